from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from sqlalchemy.types import DECIMAL
from sqlalchemy.orm import relationship

from Shared_Utils.dates_and_times import utcnow
from TableModels.base import Base, JSONVariant


class SiloRecord(Base):
    """Silo registry: name, capacity and optional product restriction."""
    __tablename__ = 'silos'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    capacity_kg = Column(DECIMAL(14, 3), nullable=False)
    allowed_products = Column(JSONVariant, nullable=True)  # list of product names; empty/None = any
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    inbound = relationship('InboundRecord', back_populates='silo',
                           cascade='all, delete-orphan', passive_deletes=True)
    outbound = relationship('OutboundRecord', back_populates='silo',
                            cascade='all, delete-orphan', passive_deletes=True)

    __table_args__ = (
        CheckConstraint('capacity_kg > 0', name='valid_capacity'),
    )
