# backend/models/forwarding_order.py
import enum
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Text, func
from database import Base

class ForwardingOrderStatus(str, enum.Enum):
    NEW = "new"
    COMPLETED = "completed"

# Freight-forwarding order ("spedycja") placed with an external carrier
class ForwardingOrder(Base):
    __tablename__ = "spedycje"

    id = Column(Integer, primary_key=True, index=True)
    # NNNN/MM/YYYY; the unique constraint serializes concurrent creators
    order_number = Column(String(20), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ForwardingOrderStatus.NEW.value, index=True)

    created_by = Column(String, nullable=True)
    created_by_email = Column(String, nullable=False, index=True)
    responsible_person = Column(String, nullable=True)
    responsible_email = Column(String, nullable=True)
    mpk = Column(String, nullable=True)

    # Pickup point: warehouse name or "Producent" (address in location_data)
    location = Column(String, nullable=True)
    location_data = Column(Text, nullable=True)
    delivery_data = Column(Text, nullable=True)
    loading_contact = Column(String, nullable=True)
    unloading_contact = Column(String, nullable=True)
    delivery_date = Column(Date, nullable=True)
    documents = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    goods_description = Column(Text, nullable=True)
    responsible_constructions = Column(Text, nullable=True)
    distance_km = Column(Float, nullable=True)

    # Serialized carrier response and merged order ids
    response_data = Column(Text, nullable=True)
    merged_transports = Column(Text, nullable=True)

    completed_by = Column(String, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
