#!/usr/bin/env python3

import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from taxis_pt.areas import ReferentialIntegrityError
from taxis_pt.ingest import SourceReadError
from taxis_pt.pipeline import build_export_pipeline

LOGGER = logging.getLogger("build_export")


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    try:
        outputs = build_export_pipeline()
    except (SourceReadError, ValueError) as exc:
        if isinstance(exc, ReferentialIntegrityError):
            kind = "hierarchy"
        elif isinstance(exc, SourceReadError):
            kind = "source"
        else:
            kind = "data"
        LOGGER.error("Export aborted (%s error): %s", kind, exc)
        return 1

    for name, path in sorted(outputs.items()):
        print(f"[build_export] {name}: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
