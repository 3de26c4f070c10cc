"""Allow running the scheduler as: python -m auction_core.scheduler [--config path]."""

import argparse

from auction_core.scheduler.runner import main

parser = argparse.ArgumentParser(description="Auction round scheduler")
parser.add_argument("--config", default=None, help="Path to config.yaml")
args = parser.parse_args()
main(config_path=args.config)
