"""Reconciliation engine for quotesync.

One reconciliation pass fetches the remote snapshot, merges it against the
record store by id, registers conflicts, pushes local-only and pending
records and then commits the merged list back to the store in one step.

The merge itself is a pure function (``plan_merge``) so it can be reasoned
about and tested without any adapters. ``ReconciliationEngine`` adds the
side effects: the remote round trip, push bookkeeping, the commit, conflict
registry updates and persistence.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .conflicts import ConflictRegistry
from .errors import ConflictNotFound, PushFailed, QuoteSyncError, SyncUnavailable
from .persistence import QuoteRepository
from .protocols import FetchFn, PushFn
from .store import RecordStore, normalize_record
from .types import (
    ConflictEntry,
    ConflictPolicy,
    QuoteRecord,
    ReconcileResult,
    timestamps_equal,
)

logger = logging.getLogger(__name__)


@dataclass
class MergePlan:
    """Outcome of merging a local snapshot with a remote snapshot.

    ``merged`` holds fresh copies; nothing in the plan aliases the store.
    """

    merged: List[QuoteRecord] = field(default_factory=list)
    added: List[QuoteRecord] = field(default_factory=list)
    conflicts: List[ConflictEntry] = field(default_factory=list)
    push_candidates: List[str] = field(default_factory=list)
    agreed: List[str] = field(default_factory=list)  # Shared ids with no divergence


def is_conflict(local: QuoteRecord, remote: QuoteRecord) -> bool:
    """Whether two versions of the same quote diverge.

    Equal timestamps or identical text both count as agreement, even when the
    other field differs.
    """
    if timestamps_equal(local.last_modified, remote.last_modified):
        return False
    if local.text == remote.text:
        return False
    return True


def plan_merge(
    local: List[QuoteRecord],
    remote: List[QuoteRecord],
    policy: ConflictPolicy = ConflictPolicy.REMOTE_WINS,
) -> MergePlan:
    """Merge a local snapshot with a remote snapshot keyed by id.

    - Remote-only ids are added with ``pending_sync=False``, after the local
      records, in remote order.
    - Shared ids that diverge become conflicts; the policy decides which
      values are kept. Under local-wins the kept record is also queued for
      push so the remote converges.
    - Local-only ids become push candidates in local order, whatever their
      current ``pending_sync`` flag says.
    - Shared ids that agree but are still pending locally (e.g. a
      category-only edit) are pushed after the local-only ids.
    """
    plan = MergePlan()

    local_map: Dict[str, QuoteRecord] = {}
    for record in local:
        local_map.setdefault(record.id, record)

    # Later duplicates of a remote id win, at the position of the first.
    remote_map: Dict[str, QuoteRecord] = {}
    for record in remote:
        remote_map[record.id] = record

    pending_pushes: List[str] = []
    local_wins_pushes: List[str] = []

    for record_id, local_record in local_map.items():
        remote_record = remote_map.get(record_id)

        if remote_record is None:
            plan.merged.append(local_record.copy())
            plan.push_candidates.append(record_id)
            continue

        if not is_conflict(local_record, remote_record):
            plan.merged.append(local_record.copy())
            plan.agreed.append(record_id)
            if local_record.pending_sync:
                pending_pushes.append(record_id)
            continue

        plan.conflicts.append(
            ConflictEntry(
                id=record_id,
                local=local_record.copy(),
                server=remote_record.copy(pending_sync=False),
                policy=policy,
            )
        )

        if policy == ConflictPolicy.REMOTE_WINS:
            plan.merged.append(
                local_record.copy(
                    text=remote_record.text,
                    category=remote_record.category,
                    last_modified=remote_record.last_modified,
                    pending_sync=False,
                )
            )
        else:
            plan.merged.append(local_record.copy(pending_sync=True))
            local_wins_pushes.append(record_id)

    for record_id, remote_record in remote_map.items():
        if record_id in local_map:
            continue
        added = remote_record.copy(pending_sync=False)
        plan.merged.append(added)
        plan.added.append(added)

    plan.push_candidates.extend(pending_pushes)
    plan.push_candidates.extend(local_wins_pushes)
    return plan


class ReconciliationEngine:
    """Owns the record store and conflict registry and runs merge passes.

    Only one pass runs at a time; a call that arrives while a pass is in
    flight is dropped and reported with ``skipped=True``.

    Args:
        store: The session's record store.
        registry: Conflict registry; a fresh one is created if omitted.
        repository: Where merged state is saved after commits and push
            confirmations. Nothing is persisted if omitted.
        remote: Default remote source for ``fetch_all``/``post``.
        policy: Conflict resolution policy.
    """

    def __init__(
        self,
        store: RecordStore,
        registry: Optional[ConflictRegistry] = None,
        repository: Optional[QuoteRepository] = None,
        remote=None,
        policy: ConflictPolicy = ConflictPolicy.REMOTE_WINS,
    ):
        self.store = store
        self.registry = registry if registry is not None else ConflictRegistry()
        self.repository = repository
        self.remote = remote
        self.policy = ConflictPolicy.parse(policy)
        self._pass_lock = threading.Lock()
        # Serializes store mutations between the engine and session edits.
        self.state_lock = threading.RLock()

    @property
    def in_flight(self) -> bool:
        return self._pass_lock.locked()

    def pending_count(self) -> int:
        return len(self.store.pending())

    # === Adapter Resolution ===

    def _fetch_fn(self, fetch: Optional[FetchFn]) -> FetchFn:
        if fetch is not None:
            return fetch
        if self.remote is None:
            raise QuoteSyncError("No remote source configured")
        return self.remote.fetch_all

    def _push_fn(self, push: Optional[PushFn]) -> PushFn:
        if push is not None:
            return push
        if self.remote is None:
            raise QuoteSyncError("No remote source configured")
        return self.remote.post

    def save(self, result: Optional[ReconcileResult] = None) -> None:
        """Persist the store and the conflict registry. Call under ``state_lock``."""
        if self.repository is None:
            return
        try:
            self.repository.save_records(self.store.snapshot())
            self.repository.save_conflicts(self.registry.list())
        except OSError as e:
            logger.error(f"Failed to persist quotes: {e}", exc_info=True)
            if result is not None:
                result.errors.append(f"Failed to persist quotes: {e}")

    # === Reconcile ===

    def reconcile(
        self, fetch: Optional[FetchFn] = None, push: Optional[PushFn] = None
    ) -> ReconcileResult:
        """Run one merge pass against the remote source.

        Remote failures never raise: a failed fetch returns a result with
        ``unavailable=True`` and leaves local state untouched, and failed
        pushes are counted in ``push_failed`` with the record left pending.
        """
        if not self._pass_lock.acquire(blocking=False):
            logger.debug("Reconcile already in flight, dropping this request")
            return ReconcileResult(skipped=True)
        try:
            return self._reconcile(self._fetch_fn(fetch), self._push_fn(push))
        finally:
            self._pass_lock.release()

    def _fetch_remote(self, fetch: FetchFn) -> List[QuoteRecord]:
        """Fetch and normalize the remote snapshot.

        Raises:
            SyncUnavailable: for any adapter failure, timeouts included.
        """
        try:
            items = fetch()
        except Exception as e:
            raise SyncUnavailable(f"Sync unavailable: {e}") from e
        if not isinstance(items, list):
            raise SyncUnavailable(
                f"Sync unavailable: remote snapshot must be a list, got {type(items).__name__}"
            )

        remote = []
        for item in items:
            record = normalize_record(item, pending_sync=False)
            if record is None:
                logger.warning(f"Skipping malformed remote quote: {item!r}")
                continue
            remote.append(record)
        return remote

    def _reconcile(self, fetch: FetchFn, push: PushFn) -> ReconcileResult:
        result = ReconcileResult()

        with self.state_lock:
            local = self.store.snapshot()

        try:
            remote = self._fetch_remote(fetch)
        except SyncUnavailable as e:
            logger.warning(f"{e} (will retry on next tick)", exc_info=True)
            result.unavailable = True
            result.errors.append(str(e))
            return result

        plan = plan_merge(local, remote, self.policy)
        result.added = len(plan.added)
        result.conflicts = list(plan.conflicts)

        by_id = {record.id: record for record in plan.merged}
        for record_id in plan.push_candidates:
            record = by_id[record_id]
            try:
                push(record)
            except Exception as e:
                record.pending_sync = True
                result.push_failed += 1
                error = PushFailed(record_id, str(e))
                result.errors.append(str(error))
                logger.error(str(error), exc_info=True)
                continue

            record.pending_sync = False
            result.pushed += 1
            self._confirm_push(record, result)

        self._commit(plan, local, result)

        logger.info(
            f"Reconcile complete: added={result.added}, conflicts={result.conflict_count}, "
            f"pushed={result.pushed}, failed={result.push_failed}"
        )
        return result

    def _confirm_push(self, pushed: QuoteRecord, result: ReconcileResult) -> None:
        """Clear the pending flag of a confirmed push in the live store and save.

        A record edited since it was pushed stays pending; one deleted since
        stays deleted.
        """
        with self.state_lock:
            current = self.store.get(pushed.id)
            if current is not None and current.pending_sync and current.same_content(pushed):
                self.store.upsert(current.copy(pending_sync=False))
            self.save(result)

    def _commit(self, plan: MergePlan, local: List[QuoteRecord], result: ReconcileResult):
        """Replace the store with the merged list and update the registry.

        Records added or edited in the store while the pass was waiting on the
        remote are kept as they are now rather than overwritten.
        """
        with self.state_lock:
            before = {r.id: r for r in local}
            merged = list(plan.merged)
            merged_ids = {r.id for r in merged}

            for current in self.store:
                original = before.get(current.id)
                if original is None and current.id not in merged_ids:
                    merged.append(current.copy())
                elif original is not None and current != original:
                    merged = [current.copy() if r.id == current.id else r for r in merged]
            deleted = set(before) - {r.id for r in self.store}
            if deleted:
                merged = [r for r in merged if r.id not in deleted]

            self.store.replace_all(merged)

            for record_id in plan.agreed:
                if self.registry.remove(record_id) is not None:
                    logger.debug(f"Conflict for quote {record_id} superseded, no divergence left")
            for entry in plan.conflicts:
                self.registry.add(entry)

            self.save(result)

    # === Conflict Resolution ===

    def resolve_accept_server(self, record_id: str) -> QuoteRecord:
        """Keep the server version of a conflicting quote and drop the entry."""
        with self.state_lock:
            record = self.registry.resolve_accept_server(record_id, self.store)
            self.save()
        return record

    def resolve_keep_local(self, record_id: str, push: Optional[PushFn] = None) -> QuoteRecord:
        """Push the local version of a conflicting quote.

        The store is only locked to stage and to confirm the record; the push
        itself runs unlocked so a slow remote does not block edits.

        Raises:
            ConflictNotFound: if there is no entry for ``record_id``.
            PushFailed: if the push fails; the conflict stays registered.
        """
        push_fn = self._push_fn(push)
        with self.state_lock:
            local = self.registry.prepare_keep_local(record_id, self.store)
            self.save()

        self.registry.push_local(record_id, local, push_fn)

        with self.state_lock:
            record = self.registry.confirm_keep_local(record_id, self.store, local)
            self.save()
        return record

    def resolve_all_accept_server(self) -> int:
        """Accept the server version for every registered conflict."""
        with self.state_lock:
            ids = self.registry.ids()
            for record_id in ids:
                self.registry.resolve_accept_server(record_id, self.store)
            self.save()
        return len(ids)

    def resolve_all_keep_local(self, push: Optional[PushFn] = None) -> List[str]:
        """Push the local version for every conflict; returns the ids that failed."""
        push_fn = self._push_fn(push)
        failed = []
        for record_id in self.registry.ids():
            try:
                self.resolve_keep_local(record_id, push_fn)
            except PushFailed:
                failed.append(record_id)
            except ConflictNotFound:
                logger.debug(f"Conflict for quote {record_id} resolved elsewhere")
        return failed

    def status(self) -> Dict[str, Any]:
        return {
            "records": len(self.store),
            "pending": self.pending_count(),
            "conflicts": len(self.registry),
            "policy": self.policy.value,
            "in_flight": self.in_flight,
        }
