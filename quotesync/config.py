"""Configuration loading for quotesync.

Settings are resolved with priority:
1. Environment variables (``QUOTESYNC_*``)
2. ``~/.quotesync/config.json`` (or ``$QUOTESYNC_HOME/config.json``)
3. Built-in defaults
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

from .errors import ConfigError
from .remote import DEFAULT_FETCH_LIMIT, DEFAULT_SERVER_URL, DEFAULT_TIMEOUT
from .scheduler import DEFAULT_SYNC_INTERVAL
from .types import ConflictPolicy

logger = logging.getLogger(__name__)

ENV_PREFIX = "QUOTESYNC_"
STORE_FILENAME = "store.json"


def get_quotesync_home(env: Optional[Mapping[str, str]] = None) -> Path:
    """Directory holding config and the persisted store."""
    env = os.environ if env is None else env
    home = env.get("QUOTESYNC_HOME")
    if home:
        return Path(home).expanduser()
    return Path.home() / ".quotesync"


LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}


def validate_server_url(url: str) -> Optional[str]:
    """Check the quote collection URL before any request is made.

    https is accepted for any host; plain http only for loopback hosts used by
    local mock servers. Embedded credentials are refused because the URL is
    written to log lines. A trailing slash is dropped so the same collection
    is never configured twice under two spellings.

    Returns:
        The cleaned URL, or ``None`` if rejected (with a warning).
    """
    url = (url or "").strip()
    if not url:
        return None

    parsed = urlparse(url)
    if parsed.scheme not in {"https", "http"}:
        logger.warning(f"Ignoring server_url with scheme {parsed.scheme!r}; use http(s)")
        return None
    if not parsed.hostname:
        logger.warning("Ignoring server_url without a host")
        return None
    if parsed.username or parsed.password:
        logger.warning("Ignoring server_url with embedded credentials")
        return None
    if parsed.scheme == "http" and parsed.hostname not in LOOPBACK_HOSTS:
        logger.warning(f"Ignoring plain-http server_url for {parsed.hostname}; use https")
        return None
    return url.rstrip("/")


def _positive_float(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e
    if number <= 0:
        raise ConfigError(f"{name} must be positive, got {number}")
    return number


@dataclass
class SyncConfig:
    """Resolved settings for a quotesync session."""

    server_url: Optional[str] = DEFAULT_SERVER_URL
    sync_interval: float = DEFAULT_SYNC_INTERVAL
    conflict_policy: ConflictPolicy = ConflictPolicy.REMOTE_WINS
    timeout: float = DEFAULT_TIMEOUT
    fetch_limit: int = DEFAULT_FETCH_LIMIT
    use_simulated_fallback: bool = True
    data_dir: Path = field(default_factory=get_quotesync_home)

    @property
    def store_path(self) -> Path:
        return self.data_dir / STORE_FILENAME

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["conflict_policy"] = self.conflict_policy.value
        data["data_dir"] = str(self.data_dir)
        return data


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Failed to load config file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: expected a JSON object")
        return {}
    return data


def load_config(
    config_path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None
) -> SyncConfig:
    """Build a SyncConfig from defaults, the config file and the environment.

    Raises:
        ConfigError: for values that cannot be interpreted (unknown policy,
            non-positive interval or timeout).
    """
    env = os.environ if env is None else env
    data_dir = get_quotesync_home(env)
    file_values = _read_config_file(config_path or data_dir / "config.json")

    def pick(name: str) -> Any:
        env_value = env.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value not in (None, ""):
            return env_value
        return file_values.get(name)

    config = SyncConfig(data_dir=data_dir)

    server_url = pick("server_url")
    if server_url is not None:
        config.server_url = validate_server_url(str(server_url))

    interval = pick("sync_interval")
    if interval is not None:
        config.sync_interval = _positive_float(interval, "sync_interval")

    timeout = pick("timeout")
    if timeout is not None:
        config.timeout = _positive_float(timeout, "timeout")

    limit = pick("fetch_limit")
    if limit is not None:
        config.fetch_limit = int(_positive_float(limit, "fetch_limit"))

    policy = pick("conflict_policy")
    if policy is not None:
        config.conflict_policy = ConflictPolicy.parse(policy)

    fallback = pick("use_simulated_fallback")
    if fallback is not None:
        if isinstance(fallback, str):
            config.use_simulated_fallback = fallback.strip().lower() in {"1", "true", "yes", "on"}
        else:
            config.use_simulated_fallback = bool(fallback)

    return config
