#!/usr/bin/env python3
"""
Route sample inventory items through the REAL routing service.

Loads the YAML routing config, wires RoutingService against an in-memory
or SQL-backed quota ledger and item store, routes either the built-in
sample items or one item described by flags, and prints each decision as
JSON.

Usage:
    python3 scripts/demo_routing.py
    python3 scripts/demo_routing.py --db-url sqlite:///routing_demo.db
    python3 scripts/demo_routing.py --brand-tier A --condition good \\
        --weight-class light --price 2500 --other-count 30
    python3 scripts/demo_routing.py --log-level INFO   # JSON logs on stderr
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from uuid import uuid4

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

# ---------------------------------------------------------------------------
# Sample items
# ---------------------------------------------------------------------------
SAMPLE_ITEMS = [
    {
        "title": "Stand mixer, 5 qt",
        "upc": "012345678905",
        "brand_tier": "B",
        "condition": "new",
        "weight_class": "light",
        "retail_price_cents": 5000,
        "stock_quantity": 10,
    },
    {
        "title": "Espresso machine",
        "upc": "036000291452",
        "brand_tier": "A",
        "condition": "good",
        "weight_class": "heavy",
        "retail_price_cents": 45000,
    },
    {
        "title": "Unidentified item",
        "upc": "000000000000",
        "brand_tier": "C",
        "condition": "parts_damaged",
        "weight_class": "light",
        "retail_price_cents": 1200,
    },
    {
        "title": "Designer handbag",
        "brand_tier": "A",
        "condition": "like_new",
        "weight_class": "light",
        "retail_price_cents": 2500,
    },
    {
        "title": "Mystery box",
        "brand_tier": "B",
        "weight_class": "medium",
    },
]


def _item_from_args(args: argparse.Namespace) -> dict | None:
    fields = {
        "brand_tier": args.brand_tier,
        "condition": args.condition,
        "weight_class": args.weight_class,
        "category": args.category,
        "retail_price_cents": args.price,
        "stock_quantity": args.stock,
        "brand": args.brand,
        "weight_ounces": args.weight_ounces,
    }
    if args.upc_matched:
        fields["upc_matched"] = True
    if all(v is None for v in fields.values()):
        return None
    return {"title": args.title, **{k: v for k, v in fields.items() if v is not None}}


def _build(args: argparse.Namespace):
    from routing_kernel.services import (
        InMemoryItemStore,
        InMemoryQuotaLedger,
        SqlItemStore,
        SqlQuotaLedger,
    )

    if not args.db_url:
        return InMemoryQuotaLedger(), InMemoryItemStore()

    from routing_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_url,
    )

    init_engine_from_url(args.db_url)
    create_tables()
    factory = get_session_factory()
    return SqlQuotaLedger(factory), SqlItemStore(factory)


def _add_item(item_store, record: dict) -> str:
    from routing_kernel.services import InMemoryItemStore

    record = dict(record)
    if isinstance(item_store, InMemoryItemStore):
        item_id = str(uuid4())
        item_store.add(item_id, record)
        return item_id
    return item_store.create_item(record.pop("title"), upc=record.pop("upc", None), **record)


def main() -> int:
    parser = argparse.ArgumentParser(description="Inventory routing demo")
    parser.add_argument("--db-url", default=None,
                        help="Database URL; in-memory ledger and items when omitted")
    parser.add_argument("--config", type=Path, default=None, help="Routing config YAML")
    parser.add_argument("--log-level", default=None,
                        help="Emit structured JSON logs on stderr at this level")
    parser.add_argument("--other-count", type=int, default=0,
                        help="Seed Tier A other-channel counter before routing")
    parser.add_argument("--limited-count", type=int, default=0,
                        help="Seed Tier A limited-channel counter before routing")
    parser.add_argument("--preview", action="store_true",
                        help="Preview decisions without reserving or persisting")

    item = parser.add_argument_group("single item")
    item.add_argument("--title", default="Ad-hoc item")
    item.add_argument("--brand-tier")
    item.add_argument("--condition")
    item.add_argument("--weight-class")
    item.add_argument("--category")
    item.add_argument("--price", type=int, help="Retail price in cents")
    item.add_argument("--stock", type=int)
    item.add_argument("--brand")
    item.add_argument("--weight-ounces", type=float)
    item.add_argument("--upc-matched", action="store_true")
    args = parser.parse_args()

    from routing_kernel.logging_config import configure_logging

    if args.log_level:
        configure_logging(level=getattr(logging, args.log_level.upper()), stream=sys.stderr)
    else:
        logging.disable(logging.CRITICAL)

    from routing_config import get_active_config
    from routing_config.provider import ConfigProvider
    from routing_kernel.domain.values import TIER_A_QUOTA_KEY
    from routing_kernel.exceptions import RoutingKernelError
    from routing_kernel.services import RoutingService

    try:
        config = get_active_config(args.config)
    except (OSError, ValueError) as exc:
        print(f"ERROR: cannot load routing config: {exc}", file=sys.stderr)
        return 1
    provider = ConfigProvider(config, source_path=args.config)

    ledger, item_store = _build(args)
    if args.other_count or args.limited_count:
        ledger.seed(TIER_A_QUOTA_KEY, args.limited_count, args.other_count)

    service = RoutingService(
        ledger=ledger,
        config_source=provider.current,
        item_store=item_store,
    )

    single = _item_from_args(args)
    records = [single] if single is not None else SAMPLE_ITEMS

    exit_code = 0
    for record in records:
        try:
            if args.preview:
                decision = service.preview(record)
                item_id = None
            else:
                item_id = _add_item(item_store, record)
                decision = service.route(item_id, actor_id="demo_routing")
        except RoutingKernelError as exc:
            print(json.dumps({"title": record.get("title"), "error": exc.code, "message": str(exc)}))
            exit_code = 1
            continue
        print(json.dumps({"item_id": item_id, "title": record.get("title"), **decision.to_dict()}))

    snapshot = ledger.snapshot(TIER_A_QUOTA_KEY)
    print(json.dumps({
        "quota_key": snapshot.quota_key,
        "limited_channel_count": snapshot.limited_channel_count,
        "other_channels_count": snapshot.other_channels_count,
        "ratio": config.high_value_brand_ratio,
    }))
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
