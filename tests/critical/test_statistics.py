"""
Critical Path Tests: Utilization and Movement Statistics

Priority: 🟡 HIGH (operational dashboards)
"""

import pytest
from decimal import Decimal

from Shared_Utils.precision import ZERO
from fifo_ledger.engine import compute_level, compute_levels
from fifo_ledger.statistics import (
    aggregate,
    aggregate_movements,
    classify_utilization,
    movement_summary,
    withdrawn_by_product,
)
from fifo_ledger.models import MovementKind


class TestUtilizationBuckets:

    @pytest.mark.critical
    @pytest.mark.parametrize("pct, bucket", [
        ("0", "empty"),
        ("0.01", "low"),
        ("25", "low"),
        ("25.01", "medium"),
        ("50", "medium"),
        ("50.01", "high"),
        ("75", "high"),
        ("75.01", "full"),
        ("100", "full"),
    ])
    def test_bucket_boundaries_are_inclusive(self, pct, bucket):
        assert classify_utilization(Decimal(pct)) == bucket

    @pytest.mark.critical
    @pytest.mark.parametrize("capacity, stored, bucket", [
        ("10000", "2500.4", "medium"),
        ("10000", "2500", "low"),
        ("500000", "1", "low"),
        ("10000", "7500.01", "full"),
    ])
    def test_computed_levels_bucket_on_exact_fill(self, make_silo, make_inbound, capacity, stored, bucket):
        """
        Given: a fill just past a bucket bound, or a tiny amount in a large silo
        When: the level is computed from history
        Then: the bucket follows the exact ratio, not a rounded one
        """
        silo = make_silo(capacity=capacity)

        levels = compute_levels([silo], [make_inbound(1, stored)], [])
        stats = aggregate(levels)

        assert levels[0].bucket.value == bucket
        assert stats.buckets[bucket] == 1
        assert stats.buckets["empty"] == 0

    def test_exact_fill_is_kept_on_the_level(self, make_silo, make_inbound):
        level = compute_level(make_silo(capacity="500000"), [make_inbound(1, "1")], [])

        assert level.utilization_percentage == Decimal("0.0002")
        assert level.utilization_percentage > ZERO


class TestFleetAggregate:

    @pytest.mark.critical
    def test_totals_and_utilization(self, make_silo, make_inbound):
        silos = [make_silo(i, f"S{i}", capacity="1000") for i in (1, 2, 3)]
        inbound = [
            make_inbound(1, "250", silo_id=2),
            make_inbound(2, "800", silo_id=3),
        ]

        stats = aggregate(compute_levels(silos, inbound, []))

        assert stats.total_silos == 3
        assert stats.total_capacity == Decimal("3000")
        assert stats.total_used == Decimal("1050")
        assert stats.overall_utilization == Decimal("35.00")
        assert stats.average_utilization == Decimal("35.00")
        assert stats.buckets == {"empty": 1, "low": 1, "medium": 0, "high": 0, "full": 1}

    def test_empty_fleet(self):
        stats = aggregate([])

        assert stats.total_silos == 0
        assert stats.overall_utilization == ZERO
        assert stats.average_utilization == ZERO
        assert sum(stats.buckets.values()) == 0

    def test_zero_capacity_fleet(self, make_silo):
        stats = aggregate([compute_level(make_silo(capacity="0"), [], [])])
        assert stats.overall_utilization == ZERO


class TestMovementAggregation:

    @pytest.mark.critical
    def test_group_by_product(self, make_inbound):
        movements = [
            make_inbound(1, "100", product="A"),
            make_inbound(2, "200", product="A"),
            make_inbound(3, "300", product="B"),
        ]

        assert aggregate_movements(movements, "product") == {"A": Decimal("300"), "B": Decimal("300")}

    def test_missing_key_counts_as_unknown(self, make_inbound):
        movements = [make_inbound(1, "10", supplier=None), make_inbound(2, "5", supplier="Coop")]

        totals = aggregate_movements(movements, "supplier")

        assert totals == {"Unknown": Decimal("10"), "Coop": Decimal("5")}

    def test_group_by_month_and_day(self, make_inbound):
        movements = [
            make_inbound(1, "10", hours=0),
            make_inbound(2, "20", hours=24),
            make_inbound(3, "30", hours=24 * 30),
        ]

        assert aggregate_movements(movements, "month") == {"2026-01": Decimal("30"), "2026-02": Decimal("30")}
        assert list(aggregate_movements(movements, "day")) == ["2026-01-05", "2026-01-06", "2026-02-04"]

    def test_group_outbound_by_operator_and_silo(self, make_outbound):
        movements = [
            make_outbound(1, "10", operator="luis", silo_id=1),
            make_outbound(2, "15", operator="ana", silo_id=2),
            make_outbound(3, "5", operator="luis", silo_id=2),
        ]

        assert aggregate_movements(movements, "operator") == {"luis": Decimal("15"), "ana": Decimal("15")}
        assert aggregate_movements(movements, "silo") == {"1": Decimal("10"), "2": Decimal("20")}

    def test_outbound_product_comes_from_plan(self, make_outbound):
        movements = [
            make_outbound(1, "10", items=[(1, "10", "Wheat")]),
            make_outbound(2, "20", items=[(1, "5", "Wheat"), (2, "15", "Corn")]),
        ]

        assert aggregate_movements(movements, "product") == {"Wheat": Decimal("10"), "Unknown": Decimal("20")}

    def test_unknown_group_by_rejected(self, make_inbound):
        with pytest.raises(ValueError):
            aggregate_movements([make_inbound(1, "10")], "colour")


class TestMovementSummary:

    def test_counts_totals_and_average(self, make_inbound):
        movements = [
            make_inbound(1, "100", product="A"),
            make_inbound(2, "200", product="A"),
            make_inbound(3, "300", product="B"),
        ]

        summary = movement_summary(movements, "product", kind=MovementKind.INBOUND)

        assert summary.total_movements == 3
        assert summary.total_quantity == Decimal("600")
        assert summary.average_quantity == Decimal("200")
        assert summary.groups["A"].count == 2
        assert summary.groups["A"].quantity == Decimal("300")
        assert summary.groups["B"].count == 1

    def test_empty_summary(self):
        summary = movement_summary([], "product")
        assert summary.total_movements == 0
        assert summary.average_quantity == ZERO
        assert summary.groups == {}


def test_withdrawn_by_product_reads_plans(make_outbound):
    movements = [
        make_outbound(1, "10", items=[(1, "10", "Wheat")]),
        make_outbound(2, "20", items=[(1, "5", "Wheat"), (2, "15", "Corn")]),
        make_outbound(3, "1", items=[(3, "1", None)]),
    ]

    assert withdrawn_by_product(movements) == {
        "Wheat": Decimal("15"),
        "Corn": Decimal("15"),
        "Unknown": Decimal("1"),
    }
