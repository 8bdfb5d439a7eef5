# backend/models/transport.py
from sqlalchemy import Column, Integer, String, Float, Boolean, Date, DateTime, Text, func
from database import Base

# Scheduled company shipment shown in the calendar
class Transport(Base):
    __tablename__ = "transports"

    id = Column(Integer, primary_key=True, index=True)
    destination_city = Column(String, nullable=False)
    postal_code = Column(String, nullable=True)
    street = Column(String, nullable=True)
    delivery_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="active")
    source_warehouse = Column(String(30), nullable=False)
    mpk = Column(String, nullable=True)
    client_name = Column(String, nullable=True)
    requester_name = Column(String, nullable=True)
    requester_email = Column(String, nullable=True)
    # Plain column; the request holds the FK in the other direction
    transport_request_id = Column(Integer, nullable=True, index=True)
    wz_number = Column(String, nullable=True)
    market_id = Column(Integer, nullable=True)
    distance = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    loading_level = Column(String(10), default="100%")
    is_cyclical = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
