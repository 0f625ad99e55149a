"""Invariant checks for a record store and conflict registry.

Structural checks that can be run after any merge pass, import or batch of
edits to confirm the session state is still well-formed.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from quotesync.conflicts import ConflictRegistry
from quotesync.store import RecordStore
from quotesync.types import parse_timestamp

logger = logging.getLogger(__name__)


@dataclass
class InvariantResult:
    """Result of a single invariant check."""

    name: str
    passed: bool
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class InvariantReport:
    """Aggregate report from running invariant checks."""

    results: List[InvariantResult] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.passed)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def failures(self) -> List[InvariantResult]:
        return [r for r in self.results if not r.passed]


def check_unique_ids(store: RecordStore) -> InvariantResult:
    counts = Counter(record.id for record in store)
    duplicates = sorted(record_id for record_id, n in counts.items() if n > 1)
    if duplicates:
        return InvariantResult(
            "unique_ids",
            False,
            f"{len(duplicates)} duplicate id(s) in store",
            {"duplicates": duplicates},
        )
    return InvariantResult("unique_ids", True, f"{len(counts)} unique ids")


def check_record_fields(store: RecordStore) -> InvariantResult:
    bad = []
    for record in store:
        if not record.id or not record.category:
            bad.append(record.id or "<missing id>")
        elif parse_timestamp(record.last_modified) is None:
            bad.append(record.id)
    if bad:
        return InvariantResult(
            "record_fields", False, f"{len(bad)} malformed record(s)", {"ids": bad}
        )
    return InvariantResult("record_fields", True, "All records well-formed")


def check_conflict_entries(registry: ConflictRegistry) -> InvariantResult:
    mismatched = [
        entry.id
        for entry in registry.list()
        if entry.local.id != entry.id or entry.server.id != entry.id
    ]
    if mismatched:
        return InvariantResult(
            "conflict_entries",
            False,
            f"{len(mismatched)} conflict(s) with mismatched snapshots",
            {"ids": mismatched},
        )
    return InvariantResult("conflict_entries", True, f"{len(registry)} conflict(s) consistent")


def check_invariants(
    store: RecordStore, registry: Optional[ConflictRegistry] = None
) -> InvariantReport:
    """Run every check and collect the results."""
    report = InvariantReport()
    report.results.append(check_unique_ids(store))
    report.results.append(check_record_fields(store))
    if registry is not None:
        report.results.append(check_conflict_entries(registry))

    for failure in report.failures():
        logger.warning(f"Invariant {failure.name} failed: {failure.message}")
    return report
