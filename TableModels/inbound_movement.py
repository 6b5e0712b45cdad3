from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey, Index, CheckConstraint
from sqlalchemy.types import DECIMAL
from sqlalchemy.orm import relationship

from Shared_Utils.dates_and_times import utcnow
from TableModels.base import Base


class InboundRecord(Base):
    """Immutable receipt of material into a silo. Each row becomes one FIFO batch."""
    __tablename__ = 'inbound_movements'

    id = Column(Integer, primary_key=True)
    silo_id = Column(Integer, ForeignKey('silos.id', ondelete='CASCADE'), nullable=False)
    quantity_kg = Column(DECIMAL(14, 3), nullable=False)
    product = Column(String(100), nullable=True, index=True)
    supplier = Column(String(100), nullable=True)
    operator = Column(String(100), nullable=True)
    lot_tf = Column(String(50), nullable=True)  # internal traceability lot
    proteins = Column(DECIMAL(5, 2), nullable=True)
    humidity = Column(DECIMAL(5, 2), nullable=True)
    cleaned = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    silo = relationship('SiloRecord', back_populates='inbound')

    __table_args__ = (
        CheckConstraint('quantity_kg > 0', name='valid_inbound_quantity'),
        Index('idx_inbound_silo_created', 'silo_id', 'created_at', 'id'),
    )
