# backend/models/transport_request.py
import enum
from sqlalchemy import Column, Integer, String, Date, DateTime, Text, ForeignKey, func
from database import Base

class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class TransportType(str, enum.Enum):
    STANDARD = "standard"
    WAREHOUSE = "warehouse"

# Internal transport request ("wniosek transportowy") awaiting approval
class TransportRequest(Base):
    __tablename__ = "transport_requests"

    id = Column(Integer, primary_key=True, index=True)
    status = Column(String(20), nullable=False, default=RequestStatus.PENDING.value, index=True)
    requester_email = Column(String, nullable=False, index=True)
    requester_name = Column(String, nullable=True)
    transport_type = Column(String(20), nullable=False, default=TransportType.STANDARD.value)

    # Destination (user supplied for standard, derived for warehouse transfers)
    destination_city = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    street = Column(String, nullable=True)
    mpk = Column(String, nullable=True)

    # Standard transport details
    construction_name = Column(String, nullable=True)
    construction_id = Column(Integer, nullable=True)
    client_name = Column(String, nullable=True)
    real_client_name = Column(String, nullable=True)
    wz_numbers = Column(String, nullable=True)
    market_id = Column(Integer, nullable=True)
    contact_person = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)

    # Warehouse transfer details
    transport_direction = Column(String(30), nullable=True)
    goods_description = Column(Text, nullable=True)
    document_numbers = Column(String, nullable=True)

    delivery_date = Column(Date, nullable=False)
    justification = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Decision
    approved_by = Column(String, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String, nullable=True)
    transport_id = Column(Integer, ForeignKey("transports.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
