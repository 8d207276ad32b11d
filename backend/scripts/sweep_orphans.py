from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from xrpic.api.dependencies import build_storage  # noqa: E402
from xrpic.core.config import ConfigError, load_settings  # noqa: E402
from xrpic.core.logging import configure_logging  # noqa: E402

logger = logging.getLogger("xrpic.sweep")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Remove upload-* temp files left in the upload directory by interrupted writers.",
    )
    parser.add_argument(
        "--older-than",
        type=float,
        default=3600.0,
        help="Only remove temp files last modified more than this many seconds ago (default: 3600)",
    )
    parser.add_argument("--dry-run", action="store_true", help="List candidates without deleting them")
    args = parser.parse_args(argv)

    configure_logging(logging.INFO)
    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Failed to load config: %s", exc)
        return 1

    storage = build_storage(settings)
    if args.dry_run:
        for path in storage.find_orphans(args.older_than):
            print(path)
        return 0

    removed = storage.sweep_orphans(args.older_than)
    logger.info("Removed %d orphan temp file(s) from %s", len(removed), settings.storage.upload_dir)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
