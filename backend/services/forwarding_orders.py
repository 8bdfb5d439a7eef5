# backend/services/forwarding_orders.py
"""
Freight-forwarding order ("spedycja") workflow.

Orders are numbered per calendar month, answered by the warehouse with a
carrier assignment (the response), and the response can be pushed to the
orders connected with the answered one. Several orders can also be answered
together as one merged group and split again later. Recording a response
never changes the order status; completion is a separate, explicit admin
action.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from models.forwarding_order import ForwardingOrder, ForwardingOrderStatus
from schemas.forwarding_order import (
    ForwardingOrderCreate, ForwardingOrderEdit, ForwardingOrderOut,
    ForwardingResponse, MergeRequest, PropagationOutcome,
)
from utils import json_fields
from utils.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from utils.mailer import FORWARDING_RESPONSE, NotificationResult, Notifier
from utils.numbering import next_order_number
from utils.permissions import Actor, Capability, can_perform, require, require_admin

logger = logging.getLogger(__name__)

PRODUCER_LOCATION = "Producent"

# Columns holding encoded structured values
STRUCTURED_FIELDS = (
    "location_data", "delivery_data", "goods_description",
    "responsible_constructions", "response_data", "merged_transports",
)


def order_to_out(order: ForwardingOrder) -> ForwardingOrderOut:
    data = {col.name: getattr(order, col.name) for col in ForwardingOrder.__table__.columns}
    for field in STRUCTURED_FIELDS:
        data[field] = json_fields.decode(data[field], field=f"spedycje.{field}#{order.id}")
    return ForwardingOrderOut(**data)


def _dump(model) -> Any:
    if model is None:
        return None
    if isinstance(model, list):
        return [m.model_dump(exclude_none=True) for m in model]
    return model.model_dump(exclude_none=True)


def _structured_values(location: Optional[str], payload, fields: Sequence[str]) -> Dict[str, Any]:
    """Map payload attributes onto their encoded columns."""
    values = {}
    if "producer_address" in fields:
        address = payload.producer_address if location == PRODUCER_LOCATION else None
        values["location_data"] = json_fields.encode(_dump(address))
    if "delivery" in fields:
        values["delivery_data"] = json_fields.encode(_dump(payload.delivery))
    if "goods_description" in fields:
        values["goods_description"] = json_fields.encode(_dump(payload.goods_description))
    if "responsible_constructions" in fields:
        values["responsible_constructions"] = json_fields.encode(_dump(payload.responsible_constructions))
    return values


def _load(db: Session, order_id: int) -> ForwardingOrder:
    order = db.query(ForwardingOrder).filter(ForwardingOrder.id == order_id).first()
    if not order:
        raise NotFoundError("Nie znaleziono zlecenia spedycji o podanym ID")
    return order


def has_response(order: ForwardingOrder) -> bool:
    if json_fields.is_empty(order.response_data):
        return False
    return not json_fields.is_empty(json_fields.decode(order.response_data, field="response_data"))


def stored_response(order: ForwardingOrder) -> Optional[ForwardingResponse]:
    decoded = json_fields.decode(order.response_data, field="response_data")
    if isinstance(decoded, dict) and decoded:
        return ForwardingResponse.model_validate(decoded)
    return None


def is_order_number_collision(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "unique" in message and "order_number" in message


def create_order(db: Session, actor: Actor, payload: ForwardingOrderCreate,
                 now: Optional[datetime] = None) -> ForwardingOrder:
    now = now or datetime.now()
    values = dict(
        status=ForwardingOrderStatus.NEW.value,
        created_by=actor.display_name,
        created_by_email=actor.email,
        responsible_person=payload.responsible_person or actor.display_name,
        responsible_email=payload.responsible_email or actor.email,
        mpk=payload.mpk,
        location=payload.location,
        loading_contact=payload.loading_contact,
        unloading_contact=payload.unloading_contact,
        delivery_date=payload.delivery_date,
        documents=payload.documents,
        notes=payload.notes,
        distance_km=payload.distance_km,
    )
    values.update(_structured_values(
        payload.location, payload,
        ("producer_address", "delivery", "goods_description", "responsible_constructions"),
    ))

    # The unique order_number constraint is the serialization point
    for attempt in range(1, settings.ORDER_NUMBER_RETRIES + 1):
        order = ForwardingOrder(order_number=next_order_number(db, now), created_at=now, **values)
        db.add(order)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if not is_order_number_collision(e):
                logger.error(f"Could not store forwarding order by {actor.email}: {e.orig}")
                raise
            logger.warning(f"Order number {order.order_number} taken (attempt {attempt}): {e.orig}")
            continue
        db.refresh(order)
        logger.info(f"Created forwarding order {order.order_number} (id={order.id}) by {actor.email}")
        return order

    raise ConflictError("Nie udało się nadać numeru zlecenia, spróbuj ponownie")


def list_orders(db: Session, status: Optional[str] = None) -> List[ForwardingOrderOut]:
    query = db.query(ForwardingOrder)
    if status:
        query = query.filter(ForwardingOrder.status == status)
    query = query.order_by(ForwardingOrder.created_at.desc(), ForwardingOrder.id.desc())
    return [order_to_out(o) for o in query.all()]


def get_order(db: Session, order_id: int) -> ForwardingOrderOut:
    return order_to_out(_load(db, order_id))


def edit_order(db: Session, actor: Actor, order_id: int, payload: ForwardingOrderEdit) -> ForwardingOrder:
    order = _load(db, order_id)
    if order.created_by_email != actor.email and not can_perform(actor, Capability.EDIT_FORWARDING_ORDERS):
        raise ForbiddenError("Brak uprawnień do edycji tego zlecenia")
    if has_response(order):
        raise ValidationError("Nie można edytować zlecenia, które ma już odpowiedź")

    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationError("Brak danych do aktualizacji")

    location = fields.get("location", order.location)
    plain = {k: v for k, v in fields.items()
             if k not in ("producer_address", "delivery", "goods_description", "responsible_constructions")}
    for key, value in plain.items():
        setattr(order, key, value)
    for key, value in _structured_values(location, payload, list(fields)).items():
        setattr(order, key, value)
    if location != PRODUCER_LOCATION:
        order.location_data = None

    db.commit()
    db.refresh(order)
    return order


def _price_per_km(cost: Optional[float], distance: Optional[float]):
    if not distance or cost is None:
        return 0
    return f"{cost / distance:.2f}"


def record_response(db: Session, actor: Actor, order_id: int, response: ForwardingResponse,
                    notifier: Notifier) -> Tuple[ForwardingOrder, NotificationResult]:
    """Store the carrier response on an order and notify; status is left as is."""
    require(actor, Capability.RESPOND_FORWARDING_ORDERS, "Brak uprawnień do odpowiadania na zlecenia spedycji")

    response = response.model_copy(update={"source_transport_id": order_id})
    if response.price_per_km is None and response.delivery_price is not None and response.distance_km:
        response = response.model_copy(update={
            "price_per_km": _price_per_km(response.delivery_price, response.distance_km),
        })

    values: Dict[str, Any] = {"response_data": json_fields.encode(response.to_storage())}
    if response.distance_km is not None:
        values["distance_km"] = response.distance_km

    updated = db.query(ForwardingOrder).filter(ForwardingOrder.id == order_id).update(
        values, synchronize_session=False
    )
    if updated == 0:
        db.rollback()
        raise NotFoundError("Nie znaleziono zlecenia spedycji o podanym ID")
    db.commit()

    # Re-read the full row for the notification context
    order = _load(db, order_id)
    db.refresh(order)
    notification = notifier.notify(FORWARDING_RESPONSE, {
        "order": order_to_out(order).model_dump(mode="json"),
        "response": response.to_storage(),
        "responded_by": actor.display_name,
    })
    if not notification.success:
        logger.warning(f"Response notification for order {order_id} failed: {notification.message}")
    return order, notification


def derive_connected_response(main: ForwardingResponse, main_order_id: int,
                              target: ForwardingOrder) -> ForwardingResponse:
    cost = main.cost_per_transport if main.cost_per_transport is not None else main.delivery_price
    derived = ForwardingResponse(
        driver_name=main.driver_name,
        driver_surname=main.driver_surname,
        driver_phone=main.driver_phone,
        vehicle_number=main.vehicle_number,
        delivery_price=cost,
        cost_per_transport=cost,
        distance_km=target.distance_km,
        price_per_km=_price_per_km(cost, target.distance_km),
        admin_notes=f"Odpowiedź wygenerowana automatycznie na podstawie zlecenia #{main_order_id}",
        is_auto_generated=True,
        source_order_id=main_order_id,
    )
    if main.date_changed and main.new_delivery_date:
        derived = derived.model_copy(update={
            "date_changed": True,
            "new_delivery_date": main.new_delivery_date,
            "original_delivery_date": target.delivery_date,
        })
    return derived


def propagate_to_connected(db: Session, connected_ids: Sequence[int], main_order_id: int,
                           main_response: ForwardingResponse) -> List[PropagationOutcome]:
    """Copy the main response onto connected orders that have none; each target on its own."""
    outcomes = []
    for target_id in connected_ids:
        if target_id == main_order_id:
            outcomes.append(PropagationOutcome(order_id=target_id, outcome="skipped", message="source order"))
            continue
        try:
            target = db.query(ForwardingOrder).filter(ForwardingOrder.id == target_id).first()
            if not target:
                outcomes.append(PropagationOutcome(order_id=target_id, outcome="not_found"))
                continue
            if has_response(target):
                outcomes.append(PropagationOutcome(order_id=target_id, outcome="skipped",
                                                   message="already has a response"))
                continue

            derived = derive_connected_response(main_response, main_order_id, target)
            target.response_data = json_fields.encode(derived.to_storage())
            db.commit()
            outcomes.append(PropagationOutcome(order_id=target_id, outcome="updated"))
        except Exception as e:
            db.rollback()
            logger.error(f"Propagating response from order {main_order_id} to {target_id} failed: {e}")
            outcomes.append(PropagationOutcome(order_id=target_id, outcome="failed", message=str(e)))
    return outcomes


def _merge_candidates(db: Session, ids: Sequence[int]) -> List[ForwardingOrder]:
    rows = db.query(ForwardingOrder).filter(ForwardingOrder.id.in_(ids)).all()
    by_id = {row.id: row for row in rows}
    missing = [i for i in ids if i not in by_id]
    if missing:
        raise NotFoundError(f"Zlecenia o ID: {', '.join(map(str, missing))} nie istnieją")

    taken = [
        f"{row.id} (status: {row.status})" for row in rows
        if row.status != ForwardingOrderStatus.NEW.value
        or has_response(row)
        or not json_fields.is_empty(row.merged_transports)
    ]
    if taken:
        raise ConflictError(f"Niektóre zlecenia zostały już przetworzone: {', '.join(taken)}")
    return [by_id[i] for i in ids]


def _validate_merge(payload: MergeRequest) -> List[int]:
    ids = list(dict.fromkeys(payload.transport_ids))
    if not ids:
        raise ValidationError("Pole transportIds: nie wybrano żadnych zleceń")
    driver = payload.driver_info
    if not driver or not driver.name:
        raise ValidationError("Pole driverInfo.name jest wymagane")
    if not driver.phone:
        raise ValidationError("Pole driverInfo.phone jest wymagane")
    if not payload.total_price or payload.total_price <= 0:
        raise ValidationError("Pole totalPrice musi być większe od zera")
    for field, label in (("transport_date", "transportDate"), ("vehicle_type", "vehicleType"),
                         ("transport_type", "transportType")):
        if not getattr(payload, field):
            raise ValidationError(f"Pole {label} jest wymagane")
    return ids


def _allocated_price(payload: MergeRequest, order_id: int, count: int) -> float:
    if payload.price_breakdown:
        return round(payload.price_breakdown.get(str(order_id), 0), 2)
    return round(payload.total_price / count, 2)


def merge_orders(db: Session, actor: Actor, payload: MergeRequest, notifier: Notifier,
                 now: Optional[datetime] = None) -> Tuple[ForwardingOrder, List[ForwardingOrder], NotificationResult]:
    """Answer several orders with one carrier; the first id becomes the main order.

    All orders are written in one transaction. A single id is a plain
    response with no merge record.
    """
    require(actor, Capability.RESPOND_FORWARDING_ORDERS, "Brak uprawnień do odpowiadania na zlecenia spedycji")
    ids = _validate_merge(payload)
    orders = _merge_candidates(db, ids)
    now = now or datetime.now()
    main, secondary = orders[0], orders[1:]
    merged = bool(secondary)
    driver = payload.driver_info

    shared = dict(
        driver_name=driver.name,
        driver_phone=driver.phone,
        vehicle_number=driver.vehicle_number,
        goods_price=payload.goods_price,
        cargo_description=payload.cargo_description,
        vehicle_type=payload.vehicle_type,
        transport_type=payload.transport_type,
        route_sequence=payload.route_sequence,
        is_merged=merged,
    )
    main_price = _allocated_price(payload, main.id, len(orders)) if merged else payload.total_price
    date_changed = payload.transport_date != main.delivery_date
    main_response = ForwardingResponse(
        **shared,
        delivery_price=main_price,
        distance_km=payload.total_distance,
        price_per_km=_price_per_km(payload.total_price, payload.total_distance) if payload.total_distance else None,
        notes=payload.notes,
        total_weight=payload.total_weight,
        date_changed=date_changed,
        new_delivery_date=payload.transport_date if date_changed else None,
        source_transport_id=main.id,
    )

    try:
        if merged:
            main_response = main_response.model_copy(update={
                "is_main_merged": True,
                "merged_transport_ids": ids,
                "total_delivery_price": payload.total_price,
                "cost_breakdown": payload.price_breakdown or {},
            })
            main.merged_transports = json_fields.encode({
                "isMain": True, "mergedTransportIds": ids, "mergedAt": now.isoformat(),
            })
        main.response_data = json_fields.encode(main_response.to_storage())
        if payload.total_distance is not None:
            main.distance_km = payload.total_distance

        for order in secondary:
            response = ForwardingResponse(
                **shared,
                delivery_price=_allocated_price(payload, order.id, len(orders)),
                notes=f"Transport połączony z #{main.id}. {payload.notes or ''}".strip(),
                date_changed=True,
                new_delivery_date=payload.transport_date,
                original_delivery_date=order.delivery_date,
                is_secondary_merged=True,
                main_transport_id=main.id,
                cost_breakdown=payload.price_breakdown or {},
            )
            order.response_data = json_fields.encode(response.to_storage())
            order.merged_transports = json_fields.encode({
                "isSecondary": True, "mainTransportId": main.id, "mergedAt": now.isoformat(),
            })
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Merging orders {ids} failed: {e}")
        raise

    logger.info(f"Orders {ids} answered together by {actor.email} (main {main.id})")
    db.refresh(main)
    notification = notifier.notify(FORWARDING_RESPONSE, {
        "order": order_to_out(main).model_dump(mode="json"),
        "response": main_response.to_storage(),
        "responded_by": actor.display_name,
    })
    if not notification.success:
        logger.warning(f"Response notification for order {main.id} failed: {notification.message}")
    return main, secondary, notification


def _merge_record(order: ForwardingOrder) -> Dict[str, Any]:
    record = json_fields.decode(order.merged_transports, field=f"spedycje.merged_transports#{order.id}")
    if json_fields.is_empty(record):
        raise ValidationError("Zlecenie nie jest połączone z innymi zleceniami")
    if not isinstance(record, dict):
        raise ValidationError("Nieprawidłowe dane połączonych zleceń")
    return record


def unmerge_order(db: Session, actor: Actor, order_id: int,
                  now: Optional[datetime] = None) -> List[ForwardingOrder]:
    """Split a merged group back into independent, unanswered orders.

    Any member of the group may be given; the whole group is released.
    Order numbers and ids are kept.
    """
    require_admin(actor, "Brak uprawnień administratora do rozłączania zleceń")
    order = _load(db, order_id)
    record = _merge_record(order)
    if record.get("isSecondary"):
        order = _load(db, record.get("mainTransportId"))
        record = _merge_record(order)
    if not record.get("isMain"):
        raise ValidationError("Nieprawidłowe dane połączonych zleceń")
    main = order
    now = now or datetime.now()

    group = [main]
    for member_id in record.get("mergedTransportIds") or []:
        if member_id == main.id:
            continue
        member = db.query(ForwardingOrder).filter(ForwardingOrder.id == member_id).first()
        if not member:
            logger.warning(f"Merged order {member_id} of main {main.id} no longer exists")
            continue
        member_record = json_fields.decode(member.merged_transports, field="merged_transports")
        if isinstance(member_record, dict) and member_record.get("mainTransportId") == main.id:
            group.append(member)

    completed = [o.id for o in group if o.status == ForwardingOrderStatus.COMPLETED.value]
    if completed:
        raise ConflictError(f"Nie można rozłączyć zrealizowanych zleceń: {', '.join(map(str, completed))}")

    stamp = f"Rozłączono przez {actor.display_name} {now.strftime('%d.%m.%Y %H:%M')}."
    try:
        for member in group:
            if member is main:
                note = f"[ROZŁĄCZONO]: Transport został przywrócony jako osobne zlecenie. {stamp}"
            else:
                note = f"[ROZŁĄCZONO]: Transport był wcześniej połączony z {main.order_number}. {stamp}"
            member.notes = f"{member.notes}\n\n{note}" if member.notes else note
            member.merged_transports = None
            member.response_data = None
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Unmerging order {main.id} failed: {e}")
        raise

    logger.info(f"Order {main.id} unmerged by {actor.email}, released {[o.id for o in group]}")
    return group


def complete_order(db: Session, actor: Actor, order_id: int, now: Optional[datetime] = None) -> ForwardingOrder:
    require_admin(actor, "Brak uprawnień do oznaczania zleceń jako zrealizowane")
    order = _load(db, order_id)
    now = now or datetime.now()

    try:
        response = stored_response(order) or ForwardingResponse()
    except ValueError as e:
        logger.error(f"Error parsing existing response data of order {order_id}: {e}")
        response = ForwardingResponse()
    response = response.model_copy(update={
        "completed_manually": True,
        "completed_by": actor.display_name,
        "completed_at": now,
    })

    order.status = ForwardingOrderStatus.COMPLETED.value
    order.response_data = json_fields.encode(response.to_storage())
    order.completed_by = actor.email
    order.completed_at = now
    db.commit()
    db.refresh(order)
    return order


def delete_order(db: Session, actor: Actor, order_id: int) -> None:
    require_admin(actor)
    deleted = db.query(ForwardingOrder).filter(ForwardingOrder.id == order_id).delete(synchronize_session=False)
    if deleted == 0:
        db.rollback()
        raise NotFoundError("Nie znaleziono zlecenia o podanym ID")
    db.commit()
