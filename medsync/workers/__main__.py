"""Run a pipeline worker.

Usage:
    python -m medsync.workers pe
    python -m medsync.workers cl
    python -m medsync.workers completion
"""

import argparse
import asyncio

from medsync.config import settings
from medsync.middleware.logging import configure_logging
from medsync.workers.runner import WORKER_KINDS, run_worker


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run an appointment pipeline worker")
    parser.add_argument("worker", choices=WORKER_KINDS, help="Worker to run")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(run_worker(args.worker, settings))


if __name__ == "__main__":
    main()
