"""Worker: refresh cached reward figures for every owner with stored positions.

Usage:
    python -m worker.update_rewards --once
    python -m worker.update_rewards --interval 60
"""

import argparse
import signal
import threading

import structlog

from config import get_settings
from xrpflr.services.updater import RewardUpdater

logger = structlog.get_logger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Refresh reward snapshots")
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    parser.add_argument(
        "--interval", "-i", type=float, default=None,
        help="Seconds between passes (default: STAKING_REWARD_UPDATE_INTERVAL)",
    )
    args = parser.parse_args(argv)

    interval: float = args.interval or get_settings().staking.reward_update_interval
    if interval <= 0:
        parser.error("--interval must be greater than 0")

    updater = RewardUpdater()
    if args.once:
        result = updater.run_once()
        logger.info(
            "Reward update complete",
            owners=result.owners_processed,
            failed=len(result.errors),
        )
        return

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    updater.run_forever(interval, stop)


if __name__ == "__main__":
    main()
