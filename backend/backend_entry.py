"""
Process entrypoint: API server or a one-shot ops command.

Run from the backend dir:
  python backend_entry.py                      -> uvicorn on HOST:PORT (default 127.0.0.1:8000)
  python backend_entry.py --ops sweep-once     -> run one archival sweep, print the summary, exit
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

# Ensure backend dir is on path so "from main import app" works
_backend_dir = Path(__file__).resolve().parent
if str(_backend_dir) not in sys.path:
    sys.path.insert(0, str(_backend_dir))


def _run_ops_sweep_once() -> int:
    """Initialize the database, run a single sweep tick and exit. No uvicorn."""

    async def _run() -> int:
        from core.config import get_settings
        from core.database import dispose_database, get_database_manager, init_database
        from core.logging import setup_logging
        from services.archival_service import run_sweep
        from services.notifications import LoggingNotifier

        settings = get_settings()
        setup_logging(settings)
        await init_database(settings.database_url)
        try:
            await get_database_manager().create_schema()
            result = await run_sweep(LoggingNotifier())
        finally:
            await dispose_database()

        print(
            json.dumps(
                {
                    "finalized": result.finalized_count,
                    "skipped": result.skipped_count,
                    "failed_ids": result.failed_ids,
                }
            )
        )
        return 1 if result.failed_ids else 0

    return asyncio.run(_run())


def main() -> int:
    parser = argparse.ArgumentParser(description="Backend entry: server or ops subcommand")
    parser.add_argument("--ops", choices=["sweep-once"], help="Run ops and exit (no server)")
    parser.add_argument("--host", default=os.environ.get("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8000")))
    args, _ = parser.parse_known_args()

    if args.ops == "sweep-once":
        return _run_ops_sweep_once()

    # Default: start uvicorn server
    from main import app
    import uvicorn

    logging.getLogger(__name__).info("Backend entry: host=%s port=%s", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    return 0


if __name__ == "__main__":
    sys.exit(main())
