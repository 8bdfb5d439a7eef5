# backend/utils/numbering.py
import re
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from models.forwarding_order import ForwardingOrder

ORDER_NUMBER_PATTERN = re.compile(r"^(\d+)/\d+/\d+$")


def month_bounds(now: datetime) -> Tuple[datetime, datetime]:
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def parse_sequence(order_number: Optional[str]) -> Optional[int]:
    match = ORDER_NUMBER_PATTERN.match(order_number or "")
    return int(match.group(1)) if match else None


def format_order_number(sequence: int, now: datetime) -> str:
    return f"{sequence:04d}/{now.month:02d}/{now.year}"


def next_order_number(db: Session, now: datetime) -> str:
    """
    Next NNNN/MM/YYYY number for the month of `now`.

    The bucket is chosen by the stored created_at, not by the month written
    inside existing numbers. Must run in the same transaction as the insert.
    """
    start, end = month_bounds(now)
    rows = db.query(ForwardingOrder.order_number).filter(
        ForwardingOrder.created_at >= start,
        ForwardingOrder.created_at < end,
    ).all()

    sequences = [s for s in (parse_sequence(r[0]) for r in rows) if s is not None]
    return format_order_number(max(sequences, default=0) + 1, now)
