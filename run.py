#!/usr/bin/env python3
"""
Bankline Entry Point

Bootstraps the ledger store, optionally seeds a test account, then starts
the FastAPI server.
"""

import argparse
import sys

from bankline.api import BankingSystem, run_server
from bankline.config import get_config
from bankline.logging_config import setup_logging
from bankline.seed import seed_accounts


def main() -> int:
    parser = argparse.ArgumentParser(description="Bankline API server")
    parser.add_argument("--seed", action="store_true", help="seed the DB")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args()

    config = get_config()
    logger = setup_logging(config.log_level, "bankline", config.log_format)

    if args.seed:
        logger.info("Seeding DB...")
        system = BankingSystem(config=config)
        try:
            seed_accounts(system.account_manager)
        finally:
            system.close()

    logger.info(f"JSON API server running on port: {args.port or config.api_port}")
    try:
        run_server(host=args.host, port=args.port)
    except KeyboardInterrupt:
        logger.info("Shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
