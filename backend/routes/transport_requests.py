# backend/routes/transport_requests.py
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from schemas.transport_request import (
    TransportRequestAction, TransportRequestCreate, TransportRequestList, TransportRequestOut,
)
from services import transport_requests as service
from utils.audit import write_log
from utils.errors import ApprovalFailedError, ValidationError
from utils.mailer import Notifier, get_notifier
from utils.permissions import Actor
from utils.tokenJWT import get_current_actor

router = APIRouter(prefix="/transport-requests", tags=["Transport requests"])


def _ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


# Own requests, or all of them for approvers
@router.get("", response_model=TransportRequestList)
def list_requests(
    status: Optional[str] = Query(None, description="pending/approved/rejected/all"),
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    rows, can_view_all = service.list_requests(db, actor, status, date_from, date_to)
    return TransportRequestList(
        requests=[TransportRequestOut.model_validate(r) for r in rows],
        can_view_all=can_view_all,
        user_role=actor.role,
    )


# Submit a new request (pending)
@router.post("")
def create_request(
    payload: TransportRequestCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: Notifier = Depends(get_notifier),
):
    created, notification = service.create_request(db, actor, payload, notifier)
    write_log(db, actor, action="REQUEST_CREATE", resource="transport_requests", status="SUCCESS",
              ip=_ip(request), resource_id=created.id, meta={"transport_type": created.transport_type})
    return {
        "success": True,
        "message": "Wniosek transportowy został złożony",
        "requestId": created.id,
        "emailNotification": notification,
    }


# Approve / reject / edit, chosen by `action`
@router.put("")
def update_request(
    payload: TransportRequestAction,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    if payload.request_id is None or not payload.action:
        raise ValidationError("Pole requestId i action są wymagane")
    request_id = payload.request_id

    if payload.action == "approve":
        try:
            transport_id, warehouse_name = service.approve_request(db, actor, request_id, payload.source_warehouse)
        except ApprovalFailedError as e:
            write_log(db, actor, action="REQUEST_APPROVE", resource="transport_requests", status="FAIL",
                      ip=_ip(request), resource_id=request_id, meta={"error": e.message})
            raise
        write_log(db, actor, action="REQUEST_APPROVE", resource="transport_requests", status="SUCCESS",
                  ip=_ip(request), resource_id=request_id,
                  meta={"transport_id": transport_id, "source_warehouse": payload.source_warehouse})
        return {
            "success": True,
            "message": f"Wniosek zaakceptowany, transport dodany do kalendarza ({warehouse_name})",
            "transportId": transport_id,
            "warehouseName": warehouse_name,
        }

    if payload.action == "reject":
        rejected = service.reject_request(db, actor, request_id, payload.rejection_reason)
        write_log(db, actor, action="REQUEST_REJECT", resource="transport_requests", status="SUCCESS",
                  ip=_ip(request), resource_id=request_id, meta={"reason": rejected.rejection_reason})
        return {"success": True, "message": "Wniosek został odrzucony"}

    if payload.action == "edit":
        edited = service.edit_request(db, actor, request_id, payload.edit_fields())
        write_log(db, actor, action="REQUEST_EDIT", resource="transport_requests", status="SUCCESS",
                  ip=_ip(request), resource_id=request_id)
        return {
            "success": True,
            "message": "Wniosek został zaktualizowany",
            "request": TransportRequestOut.model_validate(edited),
        }

    raise ValidationError(f"Pole action: nieznana akcja '{payload.action}'")
