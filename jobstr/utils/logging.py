# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations
import json
import logging
import re
import sys
from typing import Any, Dict

# Nostr private keys (bech32 nsec) must never reach a log line
NSEC_RE = re.compile(r"\bnsec1[02-9ac-hj-np-z]{20,}\b", re.IGNORECASE)

def _mask(value: str) -> str:
    return NSEC_RE.sub("nsec1***", value)

class SecretMask(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _mask(record.msg)
        if record.args:
            if isinstance(record.args, tuple):
                record.args = tuple(_mask(a) if isinstance(a, str) else a for a in record.args)
        return True

class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            "lvl": record.levelname,
            "logger": record.name,
            "msg": _mask(record.getMessage()),
        }
        for key in ("relay", "event_id", "error_type"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data)

def setup_logger(level: str = "INFO", json_mode: bool = False) -> logging.Logger:
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    # clear handlers
    for h in list(logger.handlers):
        logger.removeHandler(h)

    # stderr: stdout carries the MCP stdio transport
    h = logging.StreamHandler(sys.stderr)
    if json_mode:
        h.setFormatter(JSONFormatter())
    else:
        h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
    h.addFilter(SecretMask())
    logger.addHandler(h)

    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("mcp").setLevel(logging.WARNING)
    return logger
