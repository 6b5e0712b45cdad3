"""
Critical Path Test Fixtures

Shared fixtures for stock-critical path testing: silos and movement
histories built directly as domain objects, no database involved.
"""

import pytest
from decimal import Decimal
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from fifo_ledger.models import (
    Silo,
    InboundMovement,
    OutboundMovement,
    WithdrawalLine,
)


T0 = datetime(2026, 1, 5, 8, 0, 0, tzinfo=timezone.utc)


def at(hours: float) -> datetime:
    """Timestamp `hours` after T0"""
    return T0 + timedelta(hours=hours)


@pytest.fixture
def make_silo():
    """Factory for Silo registry entries"""
    def _make(silo_id=1, name="S1", capacity="10000", allowed_products=()):
        return Silo(
            id=silo_id,
            name=name,
            capacity=Decimal(str(capacity)),
            allowed_products=tuple(allowed_products),
        )
    return _make


@pytest.fixture
def make_inbound():
    """Factory for inbound movements; `hours` is the offset from T0"""
    def _make(movement_id, quantity, hours=0, silo_id=1, product="Wheat",
              supplier="Acme Grain", operator="ana", lot_tf=None):
        return InboundMovement(
            id=movement_id,
            silo_id=silo_id,
            quantity=Decimal(str(quantity)),
            created_at=at(hours),
            product=product,
            supplier=supplier,
            operator=operator,
            lot_tf=lot_tf or f"TF-{movement_id:04d}",
        )
    return _make


@pytest.fixture
def make_outbound():
    """Factory for outbound movements; `items` are (inbound_id, qty, product) tuples"""
    def _make(movement_id, quantity, hours=0, silo_id=1, operator="luis", items=()):
        return OutboundMovement(
            id=movement_id,
            silo_id=silo_id,
            quantity=Decimal(str(quantity)),
            created_at=at(hours),
            operator=operator,
            items=tuple(
                WithdrawalLine(inbound_id=i, quantity=Decimal(str(q)), product=p)
                for i, q, p in items
            ),
        )
    return _make


@pytest.fixture
def s1_history(make_silo, make_inbound, make_outbound):
    """
    Reference scenario:
    silo S1 (10 000 kg), +5000 at t1, +3000 at t2, -6000 at t3
    """
    silo = make_silo()
    inbound = [make_inbound(1, "5000", hours=1), make_inbound(2, "3000", hours=2)]
    outbound = [make_outbound(1, "6000", hours=3)]
    return silo, inbound, outbound


@pytest.fixture
def mock_logger():
    """Mock structured logger"""
    logger = MagicMock()
    logger.info = MagicMock()
    logger.warning = MagicMock()
    logger.unmatched_outbound = MagicMock()
    return logger
