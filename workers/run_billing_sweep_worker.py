import argparse

from common.core.config import settings
from common.workers.launcher import WorkerLauncher
from packages.billing.workers.billing_sweep_worker import BillingSweepWorker


def setup_cli() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Billing Sweep Worker")
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.billing_sweep_interval_seconds,
        help="Seconds between sweeps (default: from settings)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep and exit",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    return parser.parse_args()


def main():
    args = setup_cli()
    WorkerLauncher(BillingSweepWorker, "Billing Sweep Worker").run(
        log_level=args.log_level,
        once=args.once,
        interval_seconds=args.interval,
    )


if __name__ == "__main__":
    main()
