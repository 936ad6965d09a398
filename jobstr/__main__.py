#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0
"""Entry point for `python -m jobstr`."""

import logging
import sys

from .cli import app

if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        logging.getLogger(__name__).error("Fatal error: %s", e, exc_info=True)
        print(f"❌ Error running jobstr: {e}", file=sys.stderr)
        sys.exit(1)
