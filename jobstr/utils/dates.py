# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations
from datetime import datetime, timezone

def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()

def iso_from_unix(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
