#!/usr/bin/env python3
"""
Command-line runner

    python -m storefront_purchase user@example.com --offer <namespace> <offerId>
    python -m storefront_purchase user@example.com --slug <product-slug>
"""
import argparse
import asyncio
import sys

from .core.config import PurchaseConfig
from .core.errors import PurchaseError
from .core.models import PurchaseTarget
from .main import purchase
from .utils.logger_config import setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storefront_purchase", description="Complete a storefront purchase")
    parser.add_argument("identity", help="account email the cookies belong to")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--slug", help="product slug (full flow from the product page)")
    group.add_argument("--offer", nargs=2, metavar=("NAMESPACE", "OFFER_ID"),
                       help="offer namespace and id (short flow through the purchase page)")
    parser.add_argument("--headful", action="store_true", help="show the browser window")
    return parser


def parse_target(args) -> PurchaseTarget:
    if args.slug:
        return PurchaseTarget.product(args.slug)
    namespace, offer_id = args.offer
    return PurchaseTarget.offer(namespace, offer_id)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {"headless": False} if args.headful else {}
    config = PurchaseConfig.from_env(**overrides)
    logger = setup_logger(level=config.log_level)

    try:
        asyncio.run(purchase(args.identity, parse_target(args), config))
    except PurchaseError as e:
        logger.error(f"❌ Purchase failed: {e}")
        return 1
    logger.info("✅ Purchase complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
