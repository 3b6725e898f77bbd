"""
Concurrency tests for the Tier A fairness quota.

Many threads decide and reserve against one shared ledger at the same
time.  Every decision takes its snapshot and its reservation inside one
``hold(key)`` block, so no interleaving may push the limited-channel
count past the allowance the other-channel count earns:

    limited_channel_count <= other_channels_count // ratio

Run with: pytest tests/concurrency/test_quota_race.py -v
Skip with: pytest -m "not slow_locks"
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier
from uuid import uuid4

import pytest

from routing_config.schema import RoutingConfig
from routing_engines.eligibility import evaluate_eligibility
from routing_kernel.domain.values import (
    TIER_A_QUOTA_KEY,
    BrandTier,
    Channel,
    Condition,
    RoutingInput,
    WeightClass,
)
from routing_kernel.services import (
    InMemoryItemStore,
    InMemoryQuotaLedger,
    RoutingService,
    SqlItemStore,
    SqlQuotaLedger,
)

pytestmark = pytest.mark.slow_locks

THREADS = 50
DECISIONS_PER_THREAD = 12

PREMIUM_ITEM = RoutingInput(
    brand_tier=BrandTier.A,
    weight_class=WeightClass.LIGHT,
    condition=Condition.GOOD,
)


def _greedy_decider(ledger, config: RoutingConfig, barrier: Barrier, decisions: int):
    """Worker that takes Whatnot whenever the quota allows it."""

    def run() -> list[Channel]:
        barrier.wait()
        placed = []
        for _ in range(decisions):
            with ledger.hold(TIER_A_QUOTA_KEY) as hold:
                snapshot = hold.snapshot()
                reasons = evaluate_eligibility(
                    routing_input=PREMIUM_ITEM,
                    config=config,
                    quota_snapshot=snapshot,
                )
                channel = Channel.EBAY if reasons[Channel.WHATNOT] else Channel.WHATNOT
                if channel == Channel.WHATNOT:
                    # Checked under the hold: the reservation stays within allowance.
                    assert snapshot.limited_channel_count < snapshot.allowance(
                        config.high_value_brand_ratio
                    )
                hold.reserve(channel)
                placed.append(channel)
        return placed

    return run


def _run_deciders(ledger, config, threads, decisions) -> list[Channel]:
    barrier = Barrier(threads)
    worker = _greedy_decider(ledger, config, barrier, decisions)
    with ThreadPoolExecutor(max_workers=threads) as pool:
        futures = [pool.submit(worker) for _ in range(threads)]
        return [channel for f in futures for channel in f.result()]


class TestLedgerHoldUnderContention:
    """Deciders racing on the hold itself."""

    @pytest.mark.parametrize("ratio", [1, 3, 10])
    def test_in_memory_ratio_never_exceeded(self, ratio):
        ledger = InMemoryQuotaLedger()
        config = RoutingConfig(high_value_brand_ratio=ratio)

        placed = _run_deciders(ledger, config, THREADS, DECISIONS_PER_THREAD)

        snapshot = ledger.snapshot(TIER_A_QUOTA_KEY)
        total = THREADS * DECISIONS_PER_THREAD
        assert total >= 500
        assert len(placed) == total
        assert snapshot.limited_channel_count + snapshot.other_channels_count == total
        assert snapshot.limited_channel_count == placed.count(Channel.WHATNOT)
        assert snapshot.limited_channel_count <= snapshot.other_channels_count // ratio
        # Greedy deciders use every spot they earn.
        assert snapshot.limited_channel_count >= (snapshot.other_channels_count // ratio) - 1

    def test_sql_ratio_never_exceeded(self, session_factory):
        ledger = SqlQuotaLedger(session_factory)
        config = RoutingConfig(high_value_brand_ratio=4)

        _run_deciders(ledger, config, threads=20, decisions=25)

        snapshot = ledger.snapshot(TIER_A_QUOTA_KEY)
        assert snapshot.limited_channel_count + snapshot.other_channels_count == 500
        assert snapshot.limited_channel_count <= snapshot.other_channels_count // 4


class TestRoutingServiceUnderContention:
    """Concurrent item creation routed through the full service."""

    def test_fifty_concurrent_routers(self):
        ledger = InMemoryQuotaLedger()
        items = InMemoryItemStore()
        config = RoutingConfig()
        service = RoutingService(ledger, lambda: config, items)

        item_ids = []
        for n in range(THREADS * DECISIONS_PER_THREAD):
            item_id = str(uuid4())
            items.add(item_id, {
                "brand_tier": "A",
                "condition": ("good", "new", "like_new", "acceptable")[n % 4],
                "weight_class": ("light", "medium")[n % 2],
                "retail_price_cents": 1000 + (n % 7) * 1000,
            })
            item_ids.append(item_id)

        barrier = Barrier(THREADS)

        def worker(chunk):
            barrier.wait()
            return [service.route(item_id) for item_id in chunk]

        chunks = [item_ids[i::THREADS] for i in range(THREADS)]
        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            decisions = [d for result in pool.map(worker, chunks) for d in result]

        snapshot = ledger.snapshot(TIER_A_QUOTA_KEY)
        assert len(decisions) == len(item_ids)
        assert all(d.primary is not None for d in decisions)
        assert snapshot.limited_channel_count + snapshot.other_channels_count == len(item_ids)
        assert snapshot.limited_channel_count <= snapshot.other_channels_count // 10
        for item_id in item_ids:
            assert items.get_reservation(item_id) is not None

    def test_concurrent_reroutes_do_not_drift(self):
        ledger = InMemoryQuotaLedger()
        items = InMemoryItemStore()
        service = RoutingService(ledger, RoutingConfig, items)

        item_ids = []
        for _ in range(20):
            item_id = str(uuid4())
            items.add(item_id, {"brand_tier": "A", "condition": "good", "weight_class": "light"})
            service.route(item_id)
            item_ids.append(item_id)

        barrier = Barrier(20)

        def worker(item_id):
            barrier.wait()
            for price in (1000, 2500, 6000, 1500, 8000):
                service.reroute(item_id, {"retail_price_cents": price})

        with ThreadPoolExecutor(max_workers=20) as pool:
            list(pool.map(worker, item_ids))

        snapshot = ledger.snapshot(TIER_A_QUOTA_KEY)
        assert snapshot.limited_channel_count + snapshot.other_channels_count == 20

    def test_sql_backed_concurrent_routers(self, session_factory):
        ledger = SqlQuotaLedger(session_factory)
        items = SqlItemStore(session_factory)
        service = RoutingService(ledger, RoutingConfig, items)

        item_ids = [
            items.create_item(f"Item {n}", brand_tier="A", condition="good", weight_class="light")
            for n in range(40)
        ]
        barrier = Barrier(8)

        def worker(chunk):
            barrier.wait()
            for item_id in chunk:
                service.route(item_id)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(worker, [item_ids[i::8] for i in range(8)]))

        snapshot = ledger.snapshot(TIER_A_QUOTA_KEY)
        assert snapshot.limited_channel_count + snapshot.other_channels_count == 40
        assert snapshot.limited_channel_count <= snapshot.other_channels_count // 10
        assert all(items.get_reservation(item_id) is not None for item_id in item_ids)
