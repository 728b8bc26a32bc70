"""Run one held-payout sweep from the command line."""
import argparse
import json

from dotenv import load_dotenv

load_dotenv()

from showroom.clients import close_clients, init_clients  # noqa: E402
from showroom.config import get_settings  # noqa: E402
from showroom.core.logging import setup_logging  # noqa: E402
from showroom.services.payouts import release_held_payouts  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one held-payout sweep (for external cron).")
    parser.add_argument("--max-records", type=int, default=None, help="Cap the number of candidates.")
    args = parser.parse_args()

    # 1) Same logging + adapters as the API process
    setup_logging(get_settings().LOG_LEVEL)
    clients = init_clients()

    try:
        # 2) Sweep, then print the summary for the cron log
        summary = release_held_payouts(clients, max_records=args.max_records, actor="cron")
        print(json.dumps(summary.as_dict(), indent=2))
    finally:
        close_clients()


if __name__ == "__main__":
    main()
