from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index, CheckConstraint
from sqlalchemy.types import DECIMAL
from sqlalchemy.orm import relationship

from Shared_Utils.dates_and_times import utcnow
from TableModels.base import Base, JSONVariant


class OutboundRecord(Base):
    """Immutable dispatch of material out of a silo.

    ``items`` holds the withdrawal plan computed at admission time, one entry
    per source batch: inbound_id, quantity_kg, product, supplier, lot_tf,
    entry_date.
    """
    __tablename__ = 'outbound_movements'

    id = Column(Integer, primary_key=True)
    silo_id = Column(Integer, ForeignKey('silos.id', ondelete='CASCADE'), nullable=False)
    quantity_kg = Column(DECIMAL(14, 3), nullable=False)
    operator = Column(String(100), nullable=True, index=True)
    destination = Column(String(100), nullable=True)
    items = Column(JSONVariant, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    silo = relationship('SiloRecord', back_populates='outbound')

    __table_args__ = (
        CheckConstraint('quantity_kg > 0', name='valid_outbound_quantity'),
        Index('idx_outbound_silo_created', 'silo_id', 'created_at', 'id'),
    )
