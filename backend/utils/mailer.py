# backend/utils/mailer.py
import html
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple

import httpx
from pydantic import BaseModel

from config import settings

logger = logging.getLogger(__name__)

TRANSPORT_REQUEST_CREATED = "transport_request_created"
FORWARDING_RESPONSE = "forwarding_response"

DIRECTION_LABELS = {
    "zielonka_bialystok": "Zielonka → Białystok",
    "bialystok_zielonka": "Białystok → Zielonka",
}


# Outcome of a notification attempt; advisory only, never the operation result
class NotificationResult(BaseModel):
    success: bool
    message: str
    recipient_info: Optional[str] = None


class Notifier(Protocol):
    def notify(self, kind: str, context: Dict[str, Any]) -> NotificationResult: ...


def _fmt_date(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime("%d.%m.%Y")
    if isinstance(value, str) and len(value) >= 10:
        try:
            return datetime.fromisoformat(value[:10]).strftime("%d.%m.%Y")
        except ValueError:
            return value
    return str(value or "")


def _rows(pairs: List[Tuple[str, Any]]) -> str:
    # Skip empty values, escape the rest
    return "".join(
        f'<div class="info-row"><span class="label">{html.escape(label)}:</span> '
        f'<span class="value">{html.escape(str(value))}</span></div>'
        for label, value in pairs if value not in (None, "")
    )


def _page(title: str, subtitle: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><body>"
        f"<h1>{html.escape(title)}</h1><p>{html.escape(subtitle)}</p>{body}"
        "<p>To powiadomienie zostało wygenerowane automatycznie przez System Transportowy.</p>"
        "</body></html>"
    )


def render_transport_request_created(ctx: Dict[str, Any]) -> Tuple[str, str]:
    delivery = _fmt_date(ctx.get("delivery_date"))
    if ctx.get("transport_type") == "warehouse":
        request_type = "Przesunięcie międzymagazynowe"
        details = [
            ("Kierunek", DIRECTION_LABELS.get(ctx.get("transport_direction"), ctx.get("transport_direction"))),
            ("Opis towarów", ctx.get("goods_description")),
            ("Dokumenty", ctx.get("document_numbers")),
        ]
    else:
        request_type = "Transport do budowy/handlowca"
        location = ", ".join(p for p in (ctx.get("destination_city"), ctx.get("postal_code"), ctx.get("street")) if p)
        details = [
            ("Odbiorca", ctx.get("construction_name") or ctx.get("client_name") or "Nie podano"),
            ("MPK", ctx.get("mpk") or "Brak"),
            ("Lokalizacja", location),
            ("Rzeczywisty klient", ctx.get("real_client_name")),
            ("Numery WZ", ctx.get("wz_numbers")),
            ("Osoba kontaktowa", ctx.get("contact_person")),
            ("Telefon", ctx.get("contact_phone")),
        ]
    details += [
        ("Data dostawy", delivery),
        ("Zlecający", f"{ctx.get('requester_name')} ({ctx.get('requester_email')})"),
        ("Uzasadnienie", ctx.get("justification")),
        ("Uwagi", ctx.get("notes")),
    ]
    subject = f"Nowy wniosek transportowy - {request_type} - {delivery}"
    return subject, _page("Nowy wniosek transportowy", request_type, _rows(details))


def render_forwarding_response(ctx: Dict[str, Any]) -> Tuple[str, str]:
    order = ctx.get("order") or {}
    response = ctx.get("response") or {}
    number = order.get("order_number") or order.get("id")
    driver = " ".join(p for p in (response.get("driverName"), response.get("driverSurname")) if p)
    details = [
        ("Numer zlecenia", number),
        ("MPK", order.get("mpk")),
        ("Data dostawy", _fmt_date(order.get("delivery_date"))),
        ("Nowa data dostawy", _fmt_date(response.get("newDeliveryDate")) if response.get("dateChanged") else None),
        ("Kierowca", driver),
        ("Telefon kierowcy", response.get("driverPhone")),
        ("Pojazd", response.get("vehicleNumber")),
        ("Cena transportu", f"{response.get('deliveryPrice')} PLN" if response.get("deliveryPrice") is not None else None),
        ("Odległość", f"{response.get('distanceKm')} km" if response.get("distanceKm") else None),
        ("Cena za km", response.get("pricePerKm")),
        ("Uwagi", response.get("adminNotes")),
    ]
    subject = f"Odpowiedź na zlecenie spedycji {number}"
    return subject, _page("Odpowiedź na zlecenie spedycji", f"Zlecenie {number}", _rows(details))


class MailRelayNotifier:
    """Sends e-mail through an HTTP mail relay. Never raises to the caller."""

    def __init__(self, relay_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None, transport: Optional[httpx.BaseTransport] = None):
        self.relay_url = relay_url if relay_url is not None else settings.MAIL_RELAY_URL
        self.token = token if token is not None else settings.MAIL_RELAY_TOKEN
        self.timeout = timeout if timeout is not None else settings.MAIL_TIMEOUT_SECONDS
        self.transport = transport

    def recipients_for(self, kind: str, ctx: Dict[str, Any]) -> Tuple[List[str], List[str]]:
        if kind == TRANSPORT_REQUEST_CREATED:
            return list(settings.TRANSPORT_MANAGERS), []
        if kind == FORWARDING_RESPONSE:
            order = ctx.get("order") or {}
            creator = order.get("created_by_email")
            if creator and creator in settings.RESPONSE_NOTIFY_CREATORS:
                return [creator], []
            cc = [order["responsible_email"]] if order.get("responsible_email") else []
            return [settings.LOGISTICS_MAILBOX], cc
        raise ValueError(f"Unknown notification kind: {kind}")

    def render(self, kind: str, ctx: Dict[str, Any]) -> Tuple[str, str]:
        if kind == TRANSPORT_REQUEST_CREATED:
            return render_transport_request_created(ctx)
        if kind == FORWARDING_RESPONSE:
            return render_forwarding_response(ctx)
        raise ValueError(f"Unknown notification kind: {kind}")

    def send(self, to: List[str], cc: List[str], subject: str, body: str) -> Optional[str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        payload = {"from": settings.MAIL_SENDER, "to": to, "cc": cc, "subject": subject, "html": body}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.post(self.relay_url, json=payload, headers=headers)
            response.raise_for_status()
            try:
                return response.json().get("messageId")
            except ValueError:
                return None

    def notify(self, kind: str, context: Dict[str, Any]) -> NotificationResult:
        try:
            to, cc = self.recipients_for(kind, context)
            if not to:
                return NotificationResult(success=False, message="Brak odbiorców powiadomienia")
            recipient_info = ", ".join(to + cc)
            if not self.relay_url:
                logger.warning(f"Mail relay not configured, skipping '{kind}' to {recipient_info}")
                return NotificationResult(success=False, message="Mail relay not configured",
                                          recipient_info=recipient_info)
            subject, body = self.render(kind, context)
            message_id = self.send(to, cc, subject, body)
            logger.info(f"Notification '{kind}' sent to {recipient_info} ({message_id})")
            return NotificationResult(success=True, message=f"Powiadomienie wysłane do {len(to)} odbiorców",
                                      recipient_info=recipient_info)
        except httpx.HTTPError as e:
            logger.error(f"Mail relay error for '{kind}': {e}")
            return NotificationResult(success=False, message=f"Błąd wysyłania powiadomienia: {e}")
        except Exception as e:
            logger.exception(f"Unexpected notification failure for '{kind}'")
            return NotificationResult(success=False, message=f"Błąd wysyłania powiadomienia: {e}")


mailer = MailRelayNotifier()

# FastAPI dependency; tests override it with a recording notifier
def get_notifier() -> Notifier:
    return mailer
