# backend/services/transport_requests.py
"""
Transport request ("wniosek transportowy") workflow.

A request is created pending, then approved or rejected exactly once. Approval
materializes a calendar Transport in the same transaction as the status
change. Warehouse transfers get their destination and MPK from the
direction, never from user input.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from models.transport import Transport
from models.transport_request import RequestStatus, TransportRequest, TransportType
from schemas.transport_request import TransportRequestCreate, TransportRequestOut
from utils.errors import (
    ApprovalFailedError, ConflictError, ForbiddenError, NotFoundError, ValidationError,
)
from utils.mailer import TRANSPORT_REQUEST_CREATED, NotificationResult, Notifier
from utils.permissions import Actor, Capability, can_perform, require

logger = logging.getLogger(__name__)

WAREHOUSES = {
    "bialystok": {
        "name": "Magazyn Białystok",
        "city": "Białystok",
        "postal_code": "15-169",
        "street": "Wysockiego 69B",
    },
    "zielonka": {
        "name": "Magazyn Zielonka",
        "city": "Zielonka",
        "postal_code": "05-220",
        "street": "Krótka 2",
    },
}

# Direction -> warehouse the goods are delivered to
DIRECTION_DESTINATION = {
    "zielonka_bialystok": "bialystok",
    "bialystok_zielonka": "zielonka",
}

DIRECTION_MPK = {
    "bialystok_zielonka": "549-03-01",
    "zielonka_bialystok": "549-03-02",
}

DIRECTION_LABELS = {
    "zielonka_bialystok": "Zielonka → Białystok",
    "bialystok_zielonka": "Białystok → Zielonka",
}

WAREHOUSE_TRANSFER_CLIENT = "Przesunięcie międzymagazynowe"
DEFAULT_REJECTION_REASON = "Brak podanego powodu"

STANDARD_ONLY_FIELDS = (
    "construction_name", "construction_id", "client_name", "real_client_name",
    "wz_numbers", "market_id", "contact_person", "contact_phone",
)
WAREHOUSE_ONLY_FIELDS = ("transport_direction", "goods_description", "document_numbers")

# Never writable through edit, whatever the caller sends
PROTECTED_FIELDS = {
    "id", "status", "requester_email", "requester_name", "approved_by", "approved_at",
    "rejection_reason", "transport_id", "transport_type", "created_at", "updated_at",
}
EDITABLE_FIELDS = {
    "destination_city", "postal_code", "street", "delivery_date", "justification", "notes",
    "mpk", "construction_name", "construction_id", "client_name", "real_client_name",
    "wz_numbers", "market_id", "contact_person", "contact_phone",
    "transport_direction", "goods_description", "document_numbers",
}


def _derived_destination(direction: str) -> Dict[str, Any]:
    warehouse = WAREHOUSES[DIRECTION_DESTINATION[direction]]
    return {
        "destination_city": warehouse["city"],
        "postal_code": warehouse["postal_code"],
        "street": warehouse["street"],
        "mpk": DIRECTION_MPK[direction],
    }


def _check_delivery_date(delivery_date: Optional[date], today: date) -> None:
    if delivery_date and delivery_date < today:
        raise ValidationError("Pole delivery_date: data dostawy nie może być z przeszłości")


def validate_new_request(payload: TransportRequestCreate, today: date) -> None:
    if payload.transport_type == TransportType.WAREHOUSE.value:
        for field in ("transport_direction", "goods_description", "delivery_date", "justification"):
            if not getattr(payload, field):
                raise ValidationError(f"Pole {field} jest wymagane dla przesunięć międzymagazynowych")
        if payload.transport_direction not in DIRECTION_DESTINATION:
            raise ValidationError("Pole transport_direction: nieprawidłowy kierunek transportu")
    else:
        for field in ("destination_city", "delivery_date", "justification"):
            if not getattr(payload, field):
                raise ValidationError(f"Pole {field} jest wymagane")
        if not (payload.mpk or payload.construction_name or payload.construction_id):
            raise ValidationError("Pole mpk: wymagany numer MPK lub wskazanie budowy")
    _check_delivery_date(payload.delivery_date, today)


def create_request(db: Session, actor: Actor, payload: TransportRequestCreate, notifier: Notifier,
                   today: Optional[date] = None) -> Tuple[TransportRequest, NotificationResult]:
    require(actor, Capability.SUBMIT_TRANSPORT_REQUESTS, "Brak uprawnień do składania wniosków transportowych")
    validate_new_request(payload, today or date.today())

    values = payload.model_dump()
    if payload.transport_type == TransportType.WAREHOUSE.value:
        values.update(_derived_destination(payload.transport_direction))
        values.update({field: None for field in STANDARD_ONLY_FIELDS})
    else:
        values.update({field: None for field in WAREHOUSE_ONLY_FIELDS})

    request = TransportRequest(
        **values,
        status=RequestStatus.PENDING.value,
        requester_email=actor.email,
        requester_name=actor.display_name,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info(f"Created transport request {request.id} ({request.transport_type}) by {actor.email}")

    context = TransportRequestOut.model_validate(request).model_dump(mode="json")
    notification = notifier.notify(TRANSPORT_REQUEST_CREATED, context)
    if not notification.success:
        logger.warning(f"New request notification for {request.id} failed: {notification.message}")
    return request, notification


def list_requests(db: Session, actor: Actor, status: Optional[str] = None,
                  date_from: Optional[date] = None, date_to: Optional[date] = None
                  ) -> Tuple[List[TransportRequest], bool]:
    can_view_all = can_perform(actor, Capability.APPROVE_TRANSPORT_REQUESTS)
    query = db.query(TransportRequest)
    if not can_view_all:
        query = query.filter(TransportRequest.requester_email == actor.email)
    if status and status != "all":
        query = query.filter(TransportRequest.status == status)
    if date_from:
        query = query.filter(TransportRequest.delivery_date >= date_from)
    if date_to:
        query = query.filter(TransportRequest.delivery_date <= date_to)
    query = query.order_by(TransportRequest.created_at.desc(), TransportRequest.id.desc())
    return query.all(), can_view_all


def _load(db: Session, request_id: int) -> TransportRequest:
    request = db.query(TransportRequest).filter(TransportRequest.id == request_id).first()
    if not request:
        raise NotFoundError("Wniosek nie istnieje")
    return request


def _ensure_pending(request: TransportRequest) -> None:
    if request.status != RequestStatus.PENDING.value:
        raise ConflictError(f"Wniosek został już rozpatrzony (status: {request.status})")


def build_transport_fields(request: TransportRequest, source_warehouse: str) -> Dict[str, Any]:
    """Calendar entry fields for an approved request picked up at `source_warehouse`."""
    common = {
        "delivery_date": request.delivery_date,
        "status": "active",
        "source_warehouse": source_warehouse,
        "requester_name": request.requester_name,
        "requester_email": request.requester_email,
        "transport_request_id": request.id,
        "distance": None,
        "loading_level": "100%",
        "is_cyclical": False,
    }

    if request.transport_type == TransportType.WAREHOUSE.value:
        destination_key = "zielonka" if source_warehouse == "bialystok" else "bialystok"
        destination = WAREHOUSES[destination_key]
        direction = request.transport_direction
        return {
            **common,
            "destination_city": destination["city"],
            "postal_code": destination["postal_code"],
            "street": destination["street"],
            "mpk": DIRECTION_MPK.get(direction),
            "client_name": WAREHOUSE_TRANSFER_CLIENT,
            "wz_number": request.document_numbers,
            "market_id": None,
            "notes": (
                f"Przesunięcie międzymagazynowe z wniosku #{request.id}. "
                f"Kierunek: {DIRECTION_LABELS.get(direction, direction)}. "
                f"Towar: {request.goods_description}. "
                f"Realizuje: {WAREHOUSES[source_warehouse]['name']}"
            ),
        }

    notes = f"Transport z wniosku #{request.id}"
    if request.construction_name:
        notes += f". Budowa: {request.construction_name}"
    if request.notes:
        notes += f". {request.notes}"
    return {
        **common,
        "destination_city": request.destination_city,
        "postal_code": request.postal_code,
        "street": request.street,
        "mpk": request.mpk,
        "client_name": request.real_client_name or request.client_name,
        "wz_number": request.wz_numbers,
        "market_id": request.market_id,
        "notes": notes,
    }


def _insert_transport(db: Session, fields: Dict[str, Any]) -> Transport:
    transport = Transport(**fields)
    db.add(transport)
    db.flush()
    return transport


def _reset_to_pending(db: Session, request_id: int) -> None:
    """Compensating write after a failed approval; its own failure is only logged.

    Only a row still approved without a transport is reset, so a decision
    committed by another approver in the meantime is left alone.
    """
    try:
        reset = db.query(TransportRequest).filter(
            TransportRequest.id == request_id,
            TransportRequest.status == RequestStatus.APPROVED.value,
            TransportRequest.transport_id.is_(None),
        ).update({
            "status": RequestStatus.PENDING.value,
            "approved_by": None,
            "approved_at": None,
            "transport_id": None,
        }, synchronize_session=False)
        db.commit()
        if reset:
            logger.info(f"Transport request {request_id} reset to pending after failed approval")
        else:
            logger.info(f"Transport request {request_id} left as is, no approval without transport to reset")
    except Exception as e:
        db.rollback()
        logger.error(f"Could not reset transport request {request_id} to pending: {e}")


def approve_request(db: Session, actor: Actor, request_id: int, source_warehouse: Optional[str],
                    now: Optional[datetime] = None) -> Tuple[int, str]:
    require(actor, Capability.APPROVE_TRANSPORT_REQUESTS, "Brak uprawnień do akceptacji/odrzucenia wniosków")
    if source_warehouse not in WAREHOUSES:
        raise ValidationError("Pole sourceWarehouse: wybierz magazyn realizujący (bialystok lub zielonka)")

    request = _load(db, request_id)
    _ensure_pending(request)
    transport_fields = build_transport_fields(request, source_warehouse)
    now = now or datetime.now()

    try:
        # (a) pending -> approved, guarded so that only one decision wins
        marked = db.query(TransportRequest).filter(
            TransportRequest.id == request_id,
            TransportRequest.status == RequestStatus.PENDING.value,
        ).update({
            "status": RequestStatus.APPROVED.value,
            "approved_by": actor.display_name,
            "approved_at": now,
        }, synchronize_session=False)
        if marked == 0:
            raise ConflictError("Wniosek został już rozpatrzony")

        # (b) calendar entry, (c) back-reference
        transport = _insert_transport(db, transport_fields)
        db.query(TransportRequest).filter(TransportRequest.id == request_id).update(
            {"transport_id": transport.id}, synchronize_session=False
        )
        db.commit()
    except ConflictError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Approval of transport request {request_id} failed: {e}")
        _reset_to_pending(db, request_id)
        raise ApprovalFailedError(f"Błąd podczas tworzenia transportu: {e}")

    logger.info(f"Transport request {request_id} approved by {actor.email}, transport {transport.id}")
    return transport.id, WAREHOUSES[source_warehouse]["name"]


def reject_request(db: Session, actor: Actor, request_id: int, reason: Optional[str] = None,
                   now: Optional[datetime] = None) -> TransportRequest:
    require(actor, Capability.APPROVE_TRANSPORT_REQUESTS, "Brak uprawnień do akceptacji/odrzucenia wniosków")
    request = _load(db, request_id)
    _ensure_pending(request)

    rejected = db.query(TransportRequest).filter(
        TransportRequest.id == request_id,
        TransportRequest.status == RequestStatus.PENDING.value,
    ).update({
        "status": RequestStatus.REJECTED.value,
        "approved_by": actor.display_name,
        "approved_at": now or datetime.now(),
        "rejection_reason": (reason or "").strip() or DEFAULT_REJECTION_REASON,
    }, synchronize_session=False)
    if rejected == 0:
        db.rollback()
        raise ConflictError("Wniosek został już rozpatrzony")
    db.commit()
    db.refresh(request)
    return request


def _coerce_date(value: Any, field: str) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"Pole {field}: nieprawidłowy format daty")


def edit_request(db: Session, actor: Actor, request_id: int, fields: Dict[str, Any],
                 today: Optional[date] = None) -> TransportRequest:
    request = _load(db, request_id)
    if request.requester_email != actor.email:
        raise ForbiddenError("Nie możesz edytować cudzych wniosków")
    _ensure_pending(request)

    stripped = sorted(k for k in fields if k in PROTECTED_FIELDS)
    if stripped:
        logger.info(f"Ignoring protected fields in edit of request {request_id}: {stripped}")
    updates = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
    if not updates:
        raise ValidationError("Brak danych do aktualizacji")

    if "delivery_date" in updates:
        updates["delivery_date"] = _coerce_date(updates["delivery_date"], "delivery_date")
        if updates["delivery_date"] is None:
            raise ValidationError("Pole delivery_date jest wymagane")
        _check_delivery_date(updates["delivery_date"], today or date.today())

    for field in ("construction_id", "market_id"):
        if updates.get(field) not in (None, ""):
            try:
                updates[field] = int(updates[field])
            except (TypeError, ValueError):
                raise ValidationError(f"Pole {field}: oczekiwano liczby")
        elif field in updates:
            updates[field] = None

    if request.transport_type == TransportType.WAREHOUSE.value:
        # Destination and MPK follow the direction only
        for field in ("destination_city", "postal_code", "street", "mpk") + STANDARD_ONLY_FIELDS:
            updates.pop(field, None)
        if "transport_direction" in updates:
            if updates["transport_direction"] not in DIRECTION_DESTINATION:
                raise ValidationError("Pole transport_direction: nieprawidłowy kierunek transportu")
            updates.update(_derived_destination(updates["transport_direction"]))
    else:
        for field in WAREHOUSE_ONLY_FIELDS:
            updates.pop(field, None)

    if not updates:
        raise ValidationError("Brak danych do aktualizacji")

    for key, value in updates.items():
        setattr(request, key, value)
    request.updated_at = datetime.now()
    db.commit()
    db.refresh(request)
    return request
