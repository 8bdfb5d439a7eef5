from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional, Union
from datetime import date, datetime


# Postal address used for producer pickup and delivery
class Address(BaseModel):
    city: Optional[str] = None
    postal_code: Optional[str] = None
    street: Optional[str] = None
    company: Optional[str] = None

# Structured goods description
class GoodsDescription(BaseModel):
    description: Optional[str] = None
    weight: Optional[str] = None

# Construction site an order is booked against
class ResponsibleConstruction(BaseModel):
    id: Optional[int] = None
    name: str
    mpk: Optional[str] = None


# Input schema for a new forwarding order
class ForwardingOrderCreate(BaseModel):
    location: str
    delivery_date: date
    responsible_person: Optional[str] = None
    responsible_email: Optional[EmailStr] = None
    mpk: Optional[str] = None
    producer_address: Optional[Address] = None
    delivery: Optional[Address] = None
    loading_contact: Optional[str] = None
    unloading_contact: Optional[str] = None
    documents: Optional[str] = None
    notes: Optional[str] = None
    goods_description: Optional[GoodsDescription] = None
    responsible_constructions: Optional[List[ResponsibleConstruction]] = None
    distance_km: Optional[float] = None

# Editable content of an order that has no response yet
class ForwardingOrderEdit(BaseModel):
    location: Optional[str] = None
    delivery_date: Optional[date] = None
    mpk: Optional[str] = None
    producer_address: Optional[Address] = None
    delivery: Optional[Address] = None
    loading_contact: Optional[str] = None
    unloading_contact: Optional[str] = None
    documents: Optional[str] = None
    notes: Optional[str] = None
    goods_description: Optional[GoodsDescription] = None
    responsible_constructions: Optional[List[ResponsibleConstruction]] = None
    distance_km: Optional[float] = None


class ForwardingResponse(BaseModel):
    """Carrier assignment stored inside an order (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    driver_name: Optional[str] = None
    driver_surname: Optional[str] = None
    driver_phone: Optional[str] = None
    vehicle_number: Optional[str] = None
    delivery_price: Optional[float] = None
    cost_per_transport: Optional[float] = None
    distance_km: Optional[float] = None
    price_per_km: Optional[Union[str, float]] = None
    admin_notes: Optional[str] = None
    is_auto_generated: Optional[bool] = None
    source_transport_id: Optional[int] = None
    source_order_id: Optional[int] = None
    date_changed: Optional[bool] = None
    new_delivery_date: Optional[date] = None
    original_delivery_date: Optional[date] = None
    completed_manually: Optional[bool] = None
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    # Shared response across merged orders
    notes: Optional[str] = None
    goods_price: Optional[float] = None
    cargo_description: Optional[str] = None
    total_weight: Optional[Union[str, float]] = None
    vehicle_type: Optional[str] = None
    transport_type: Optional[str] = None
    route_sequence: Optional[List[Any]] = None
    is_merged: Optional[bool] = None
    is_main_merged: Optional[bool] = None
    is_secondary_merged: Optional[bool] = None
    merged_transport_ids: Optional[List[int]] = None
    main_transport_id: Optional[int] = None
    total_delivery_price: Optional[float] = None
    cost_breakdown: Optional[Dict[str, float]] = None

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

# PUT body: order id, response fields and orders to propagate to
class ForwardingResponseUpdate(ForwardingResponse):
    id: int
    connected_transports: List[int] = Field(default_factory=list)

    def response(self) -> ForwardingResponse:
        data = self.model_dump(by_alias=False, exclude={"id", "connected_transports"})
        return ForwardingResponse(**data)


# Output schema; structured fields are decoded (raw text if undecodable)
class ForwardingOrderOut(BaseModel):
    id: int
    order_number: str
    status: str
    created_by: Optional[str] = None
    created_by_email: str
    responsible_person: Optional[str] = None
    responsible_email: Optional[str] = None
    mpk: Optional[str] = None
    location: Optional[str] = None
    location_data: Optional[Any] = None
    delivery_data: Optional[Any] = None
    loading_contact: Optional[str] = None
    unloading_contact: Optional[str] = None
    delivery_date: Optional[date] = None
    documents: Optional[str] = None
    notes: Optional[str] = None
    goods_description: Optional[Any] = None
    responsible_constructions: Optional[Any] = None
    distance_km: Optional[float] = None
    response_data: Optional[Any] = None
    merged_transports: Optional[Any] = None
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

class ForwardingOrderList(BaseModel):
    success: bool = True
    orders: List[ForwardingOrderOut]

class ForwardingOrderCreated(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    id: int
    order_number: str = Field(alias="orderNumber")

# Result of propagating a response to one connected order
class PropagationOutcome(BaseModel):
    order_id: int
    outcome: str
    message: Optional[str] = None


# Carrier who takes a merged group of orders
class DriverInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    phone: Optional[str] = None
    vehicle_number: Optional[str] = None

# One response shared by several orders; the first id is the main order
class MergeRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    transport_ids: List[int] = Field(default_factory=list)
    driver_info: Optional[DriverInfo] = None
    total_price: Optional[float] = None
    price_breakdown: Optional[Dict[str, float]] = None
    transport_date: Optional[date] = None
    route_sequence: List[Any] = Field(default_factory=list)
    notes: Optional[str] = None
    cargo_description: Optional[str] = None
    total_weight: Optional[Union[str, float]] = None
    total_distance: Optional[float] = None
    goods_price: Optional[float] = None
    vehicle_type: Optional[str] = None
    transport_type: Optional[str] = None

class UnmergeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transport_id: Optional[int] = Field(default=None, alias="transportId")
