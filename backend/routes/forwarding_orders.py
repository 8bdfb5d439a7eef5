# backend/routes/forwarding_orders.py
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from schemas.forwarding_order import (
    ForwardingOrderCreate, ForwardingOrderCreated, ForwardingOrderEdit,
    ForwardingOrderList, ForwardingResponseUpdate, MergeRequest, UnmergeRequest,
)
from services import forwarding_orders as service
from utils.audit import write_log
from utils.errors import ValidationError
from utils.mailer import Notifier, get_notifier
from utils.permissions import Actor, require_admin
from utils.tokenJWT import get_current_actor

router = APIRouter(prefix="/forwarding-orders", tags=["Forwarding orders"])


def _ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


# List orders, optionally filtered by status (newest first)
@router.get("", response_model=ForwardingOrderList)
def list_orders(
    status: Optional[str] = Query(None, description="Filtruj po statusie (new/completed)"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return {"success": True, "orders": service.list_orders(db, status)}


# Single order with decoded structured fields
@router.get("/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    return {"success": True, "order": service.get_order(db, order_id)}


# Create a new forwarding order with the next monthly number
@router.post("", response_model=ForwardingOrderCreated)
def create_order(
    payload: ForwardingOrderCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    order = service.create_order(db, actor, payload)
    write_log(db, actor, action="ORDER_CREATE", resource="forwarding_orders", status="SUCCESS",
              ip=_ip(request), resource_id=order.id, meta={"order_number": order.order_number})
    return ForwardingOrderCreated(id=order.id, order_number=order.order_number)


# Record the carrier response and push it to connected orders
@router.put("")
def record_response(
    payload: ForwardingResponseUpdate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: Notifier = Depends(get_notifier),
):
    response = payload.response()
    order, notification = service.record_response(db, actor, payload.id, response, notifier)
    write_log(db, actor, action="ORDER_RESPONSE", resource="forwarding_orders", status="SUCCESS",
              ip=_ip(request), resource_id=order.id, meta={"connected": payload.connected_transports})

    propagation = []
    if payload.connected_transports:
        propagation = service.propagate_to_connected(db, payload.connected_transports, order.id, response)
        failed = [p.order_id for p in propagation if p.outcome == "failed"]
        write_log(db, actor, action="ORDER_PROPAGATE", resource="forwarding_orders",
                  status="FAIL" if failed else "SUCCESS", ip=_ip(request),
                  resource_id=order.id, meta={"outcomes": [p.model_dump() for p in propagation]})

    return {
        "success": True,
        "order": service.order_to_out(order),
        "propagation": propagation,
        "emailNotification": notification,
    }


# One response for several orders at once (first id is the main order)
@router.post("/merge")
def merge_orders(
    payload: MergeRequest,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: Notifier = Depends(get_notifier),
):
    main, secondary, notification = service.merge_orders(db, actor, payload, notifier)
    count = len(secondary) + 1
    write_log(db, actor, action="ORDER_MERGE", resource="forwarding_orders", status="SUCCESS",
              ip=_ip(request), resource_id=main.id, meta={"merged": [o.id for o in secondary]})
    if secondary:
        message = f"Odpowiedź została zapisana dla {count} połączonych zleceń"
    else:
        message = "Odpowiedź została zapisana"
    return {
        "success": True,
        "message": message,
        "mainTransportId": main.id,
        "mergedCount": count,
        "emailNotification": notification,
    }


# Split a merged group back into separate orders (admin)
@router.post("/unmerge")
def unmerge_order(
    payload: UnmergeRequest,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    require_admin(actor, "Brak uprawnień administratora do rozłączania zleceń")
    if payload.transport_id is None:
        raise ValidationError("Nie podano ID zlecenia do rozłączenia")
    restored = service.unmerge_order(db, actor, payload.transport_id)
    write_log(db, actor, action="ORDER_UNMERGE", resource="forwarding_orders", status="SUCCESS",
              ip=_ip(request), resource_id=restored[0].id, meta={"restored": [o.id for o in restored]})
    return {
        "success": True,
        "message": f"Rozłączono zlecenia: {', '.join(o.order_number for o in restored)}",
        "restoredCount": len(restored),
        "orders": [service.order_to_out(o) for o in restored],
    }


# Edit an order that has not been answered yet
@router.put("/{order_id}")
def edit_order(
    order_id: int,
    payload: ForwardingOrderEdit,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    order = service.edit_order(db, actor, order_id, payload)
    write_log(db, actor, action="ORDER_EDIT", resource="forwarding_orders", status="SUCCESS",
              ip=_ip(request), resource_id=order.id)
    return {"success": True, "message": "Zlecenie zostało zaktualizowane", "order": service.order_to_out(order)}


# Manually mark an order as completed (admin)
@router.post("/{order_id}/complete")
def complete_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    order = service.complete_order(db, actor, order_id)
    write_log(db, actor, action="ORDER_COMPLETE", resource="forwarding_orders", status="SUCCESS",
              ip=_ip(request), resource_id=order.id)
    return {"success": True, "order": service.order_to_out(order)}


# Hard delete (admin)
@router.delete("")
def delete_order(
    request: Request,
    id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    require_admin(actor)
    if id is None:
        raise ValidationError("Nie podano ID zlecenia")
    service.delete_order(db, actor, id)
    write_log(db, actor, action="ORDER_DELETE", resource="forwarding_orders", status="SUCCESS",
              ip=_ip(request), resource_id=id)
    return {"success": True}
