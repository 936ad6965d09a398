# jobstr/settings.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

from jobstr.exceptions import ConfigurationError

load_dotenv()  # load .env early

DEFAULT_RELAYS = [
    "wss://relay.damus.io",
    "wss://relay.nostr.band",
    "wss://nos.lol",
    "wss://nostr-pub.wellorder.net",
    "wss://nostr.wine",
]

TRANSPORTS = {"stdio", "sse", "http", "streamable-http"}


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, "").strip() or default)
    except Exception:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int((os.getenv(name, "") or str(default)).strip())
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    v = v.strip().lower()
    return v in {"1", "true", "yes", "on", "y", "t"}


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class _Settings:
    # Relays
    relays: List[str] = field(default_factory=lambda: _env_list("JOBSTR_RELAYS", DEFAULT_RELAYS))
    job_kind: int = field(default_factory=lambda: _env_int("JOBSTR_JOB_KIND", 9993))
    fetch_limit: int = field(default_factory=lambda: _env_int("JOBSTR_FETCH_LIMIT", 500))
    connect_timeout_s: float = field(default_factory=lambda: _env_float("JOBSTR_CONNECT_TIMEOUT_S", 5.0))
    backoff_base_s: float = field(default_factory=lambda: _env_float("JOBSTR_BACKOFF_BASE_S", 1.0))
    backoff_cap_s: float = field(default_factory=lambda: _env_float("JOBSTR_BACKOFF_CAP_S", 30.0))
    max_frame_bytes: int = field(default_factory=lambda: _env_int("JOBSTR_MAX_FRAME_BYTES", 1 << 20))
    verify_event_ids: bool = field(default_factory=lambda: _env_bool("JOBSTR_VERIFY_EVENT_IDS", True))

    # Pool bounds
    dedup_window: int = field(default_factory=lambda: _env_int("JOBSTR_DEDUP_WINDOW", 10_000))
    queue_size: int = field(default_factory=lambda: _env_int("JOBSTR_QUEUE_SIZE", 1_000))

    # Index housekeeping
    listing_ttl_s: int = field(default_factory=lambda: _env_int("JOBSTR_LISTING_TTL_S", 0))
    sweep_interval_s: float = field(default_factory=lambda: _env_float("JOBSTR_SWEEP_INTERVAL_S", 60.0))
    max_tombstones: int = field(default_factory=lambda: _env_int("JOBSTR_MAX_TOMBSTONES", 10_000))
    snapshot_path: str = field(default_factory=lambda: os.getenv("JOBSTR_SNAPSHOT_PATH", "").strip())
    snapshot_interval_s: float = field(default_factory=lambda: _env_float("JOBSTR_SNAPSHOT_INTERVAL_S", 300.0))

    # Response bounds
    search_limit: int = field(default_factory=lambda: _env_int("JOBSTR_SEARCH_LIMIT", 20))
    stats_top: int = field(default_factory=lambda: _env_int("JOBSTR_STATS_TOP", 0))
    latest_limit: int = field(default_factory=lambda: _env_int("JOBSTR_LATEST_LIMIT", 20))

    # MCP transport
    transport: str = field(default_factory=lambda: os.getenv("JOBSTR_TRANSPORT", "stdio").strip().lower())
    host: str = field(default_factory=lambda: os.getenv("JOBSTR_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: _env_int("JOBSTR_PORT", 8000))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    log_json: bool = field(default_factory=lambda: _env_bool("LOG_JSON", False))

    def __post_init__(self) -> None:
        # repeated URLs (env or --relay) would open two links to one relay
        self.relays = list(dict.fromkeys(self.relays))
        self.validate()

    def validate(self) -> None:
        """Reject settings that would leave a structure unbounded or a loop spinning."""
        if not self.relays:
            raise ConfigurationError("At least one relay URL is required (JOBSTR_RELAYS)")
        for url in self.relays:
            if not url.startswith(("ws://", "wss://")):
                raise ConfigurationError(f"Relay URL must use ws:// or wss://: {url}")
        if self.backoff_base_s <= 0:
            raise ConfigurationError("JOBSTR_BACKOFF_BASE_S must be positive")
        if self.backoff_cap_s < self.backoff_base_s:
            raise ConfigurationError("JOBSTR_BACKOFF_CAP_S must be >= JOBSTR_BACKOFF_BASE_S")
        for name in ("dedup_window", "queue_size", "max_tombstones", "max_frame_bytes", "fetch_limit"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        for name in ("search_limit", "latest_limit"):
            if not (1 <= getattr(self, name) <= 100):
                raise ConfigurationError(f"{name} must be between 1 and 100")
        if self.stats_top < 0:
            raise ConfigurationError("JOBSTR_STATS_TOP must be >= 0 (0 returns every pair)")
        if self.listing_ttl_s < 0:
            raise ConfigurationError("JOBSTR_LISTING_TTL_S must be >= 0 (0 disables eviction)")
        if self.transport not in TRANSPORTS:
            raise ConfigurationError(
                f"Unknown transport '{self.transport}'; expected one of {sorted(TRANSPORTS)}"
            )
        if not (1 <= self.port <= 65535):
            raise ConfigurationError(f"Port {self.port} is not in valid range (1-65535)")


SETTINGS = _Settings()
