# =============================================================================
# hisaab_core/offline/config.py
# Offline Layer Configuration
# =============================================================================
"""
OfflineConfig - settings for the worker, its cache stores and sync endpoints.

Values are resolved in this order (later wins):
    1. Dataclass defaults
    2. The [offline] table of .streamlit/secrets.toml
    3. Environment variables (a local .env file is loaded first)

Example secrets.toml:
    [offline]
    origin = "https://app.hisaabdost.com"
    cache_version = "v4"
    data_backend_hosts = ["*.supabase.co"]
"""

from __future__ import annotations
import os
import re
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
import logging

from dotenv import load_dotenv

from hisaab_core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SECRETS_PATH = Path(".streamlit") / "secrets.toml"

# Content-hashed build chunks, e.g. /assets/Dashboard-3f9c1a7b.js
DEFAULT_ASSET_CHUNK_PATTERN = r"^/assets/.+-[A-Za-z0-9_]{8,}\.(?:js|mjs|css)$"


@dataclass
class OfflineConfig:
    """Configuration for the offline cache and sync layer."""
    origin: str = "http://localhost:8080"
    cache_version: str = "v4"
    app_shell_files: List[str] = field(
        default_factory=lambda: ["/", "/index.html", "/manifest.json"]
    )
    entry_document: str = "/index.html"
    data_backend_hosts: List[str] = field(default_factory=lambda: ["*.supabase.co"])
    data_path_prefixes: List[str] = field(default_factory=lambda: ["/api/"])
    asset_chunk_pattern: str = DEFAULT_ASSET_CHUNK_PATTERN
    sync_endpoints: Dict[str, str] = field(default_factory=lambda: {
        "sync-expenses": "/api/sync/expenses",
        "sync-budgets": "/api/sync/budgets",
    })
    request_timeout: Optional[float] = None   # None: rely on the transport
    cache_db_path: Optional[Path] = None      # None: in-memory stores
    quota_bytes: Optional[int] = None

    def __post_init__(self):
        self.validate()

    @property
    def app_shell_cache(self) -> str:
        return f"app-shell-{self.cache_version}"

    @property
    def data_cache(self) -> str:
        return f"data-cache-{self.cache_version}"

    @property
    def allowed_caches(self) -> List[str]:
        return [self.app_shell_cache, self.data_cache]

    def validate(self) -> None:
        parsed = urlparse(self.origin)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                f"Origin must be an absolute http(s) URL, got {self.origin!r}",
                config_key="origin",
                expected_type="url",
            )
        if not self.cache_version:
            raise ConfigurationError("Cache version must not be empty", config_key="cache_version")
        try:
            re.compile(self.asset_chunk_pattern)
        except re.error as e:
            raise ConfigurationError(
                f"Invalid asset chunk pattern: {e}",
                config_key="asset_chunk_pattern",
                expected_type="regex",
            )
        if self.quota_bytes is not None and self.quota_bytes <= 0:
            raise ConfigurationError(
                "Quota must be a positive number of bytes",
                config_key="quota_bytes",
                expected_type="int",
            )
        for tag, endpoint in self.sync_endpoints.items():
            if not endpoint.startswith("/"):
                raise ConfigurationError(
                    f"Sync endpoint for {tag!r} must be a path, got {endpoint!r}",
                    config_key="sync_endpoints",
                )


def _load_secrets(secrets_path: Path) -> Dict[str, Any]:
    """Read the [offline] table from a secrets.toml file."""
    if not secrets_path.exists():
        return {}
    try:
        with open(secrets_path, "rb") as f:
            secrets = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            f"Could not parse {secrets_path}: {e}",
            config_key="secrets",
        )
    section = secrets.get("offline", {})
    logger.debug(f"Loaded {len(section)} offline settings from {secrets_path}")
    return dict(section)


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}

    if os.getenv("HISAAB_ORIGIN"):
        overrides["origin"] = os.getenv("HISAAB_ORIGIN")
    if os.getenv("HISAAB_CACHE_VERSION"):
        overrides["cache_version"] = os.getenv("HISAAB_CACHE_VERSION")
    if os.getenv("HISAAB_DATA_HOSTS"):
        overrides["data_backend_hosts"] = _split_list(os.getenv("HISAAB_DATA_HOSTS"))
    if os.getenv("HISAAB_CACHE_DB"):
        overrides["cache_db_path"] = os.getenv("HISAAB_CACHE_DB")
    if os.getenv("HISAAB_REQUEST_TIMEOUT"):
        overrides["request_timeout"] = os.getenv("HISAAB_REQUEST_TIMEOUT")
    if os.getenv("HISAAB_QUOTA_BYTES"):
        overrides["quota_bytes"] = os.getenv("HISAAB_QUOTA_BYTES")

    return overrides


def _coerce(values: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(OfflineConfig)}
    unknown = set(values) - known
    if unknown:
        logger.warning(f"Ignoring unknown offline settings: {sorted(unknown)}")

    coerced = {k: v for k, v in values.items() if k in known}
    try:
        if coerced.get("cache_db_path") is not None:
            coerced["cache_db_path"] = Path(coerced["cache_db_path"])
        if coerced.get("request_timeout") is not None:
            coerced["request_timeout"] = float(coerced["request_timeout"])
        if coerced.get("quota_bytes") is not None:
            coerced["quota_bytes"] = int(coerced["quota_bytes"])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid numeric setting: {e}", expected_type="number")
    return coerced


def load_config(secrets_path: Optional[Path] = None, load_env_file: bool = True) -> OfflineConfig:
    """
    Build an OfflineConfig from secrets.toml and the environment.

    SUPABASE_URL, when set, adds the project's host to the data-backend hosts
    so its requests get the offline placeholder.

    Args:
        secrets_path: Path to secrets.toml (default: .streamlit/secrets.toml)
        load_env_file: Whether to read a local .env file first

    Returns:
        Validated OfflineConfig
    """
    if load_env_file:
        load_dotenv()

    values = _load_secrets(secrets_path or DEFAULT_SECRETS_PATH)
    values.update(_env_overrides())
    config = OfflineConfig(**_coerce(values))

    supabase_host = urlparse(os.getenv("SUPABASE_URL", "")).hostname
    if supabase_host and supabase_host not in config.data_backend_hosts:
        config.data_backend_hosts.append(supabase_host)

    logger.info(
        f"Offline config loaded: origin={config.origin}, "
        f"caches={config.allowed_caches}, data hosts={config.data_backend_hosts}"
    )
    return config
