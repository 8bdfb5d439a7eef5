from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional
from datetime import date, datetime


# Input schema for a new transport request; per-type rules live in the workflow
class TransportRequestCreate(BaseModel):
    transport_type: Literal["standard", "warehouse"] = "standard"
    delivery_date: Optional[date] = None
    justification: Optional[str] = None
    notes: Optional[str] = None

    # Standard transport
    destination_city: Optional[str] = None
    postal_code: Optional[str] = None
    street: Optional[str] = None
    mpk: Optional[str] = None
    construction_name: Optional[str] = None
    construction_id: Optional[int] = None
    client_name: Optional[str] = None
    real_client_name: Optional[str] = None
    wz_numbers: Optional[str] = None
    market_id: Optional[int] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None

    # Warehouse transfer
    transport_direction: Optional[str] = None
    goods_description: Optional[str] = None
    document_numbers: Optional[str] = None


# PUT body: {requestId, action, ...}; for "edit" the extra keys are the new values
class TransportRequestAction(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    request_id: Optional[int] = Field(default=None, alias="requestId")
    action: Optional[str] = None
    source_warehouse: Optional[str] = Field(default=None, alias="sourceWarehouse")
    rejection_reason: Optional[str] = None

    def edit_fields(self) -> dict:
        return dict(self.model_extra or {})


class TransportRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: str
    requester_email: str
    requester_name: Optional[str] = None
    transport_type: str
    destination_city: Optional[str] = None
    postal_code: Optional[str] = None
    street: Optional[str] = None
    mpk: Optional[str] = None
    construction_name: Optional[str] = None
    construction_id: Optional[int] = None
    client_name: Optional[str] = None
    real_client_name: Optional[str] = None
    wz_numbers: Optional[str] = None
    market_id: Optional[int] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    transport_direction: Optional[str] = None
    goods_description: Optional[str] = None
    document_numbers: Optional[str] = None
    delivery_date: date
    justification: Optional[str] = None
    notes: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    transport_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class TransportRequestList(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    requests: List[TransportRequestOut]
    can_view_all: bool = Field(alias="canViewAll")
    user_role: Optional[str] = Field(default=None, alias="userRole")
