"""Shipment store: posting loads and the paginated shipment feed."""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from freight_market.app.config import get_settings
from freight_market.domain.enums import EventName, IdPrefix, ShipmentStatus
from freight_market.domain.errors import NotFoundError, ValidationError
from freight_market.domain.models import Flag, Shipment, utcnow
from freight_market.domain.schemas import ShipmentCreate
from freight_market.infra.repository import MarketRepository, ShipmentFilters
from freight_market.services import audit_log
from freight_market.services.identity import next_id
from freight_market.services.publisher import Publisher, get_publisher
from freight_market.services.serializers import dump, shipment_view

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShipmentPage:
    items: list[Shipment]
    next_cursor: Optional[str]


# ---------------------------------------------------------------------------
# Cursor encoding
# ---------------------------------------------------------------------------


def encode_cursor(created_at: datetime, shipment_id: str) -> str:
    """Opaque token for the (created_at, id) key of the last item on a page."""
    raw = json.dumps([created_at.isoformat(), shipment_id], separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode()).decode().rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, str]:
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        created_raw, shipment_id = json.loads(base64.urlsafe_b64decode(padded.encode()))
        created_at = datetime.fromisoformat(created_raw)
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError):
        raise ValidationError("invalid cursor")
    if not isinstance(shipment_id, str):
        raise ValidationError("invalid cursor")
    if created_at.tzinfo is not None:
        created_at = created_at.astimezone(timezone.utc).replace(tzinfo=None)
    return created_at, shipment_id


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def create_shipment(
    repo: MarketRepository,
    data: ShipmentCreate,
    owner_id: Optional[str] = None,
    publisher: Optional[Publisher] = None,
    actor: str = "shipper",
) -> Shipment:
    """Validate and store a new OPEN shipment, then announce it."""
    pickup = (data.pickup or "").strip()
    dropoff = (data.dropoff or "").strip()
    if not pickup or not dropoff:
        raise ValidationError("pickup and dropoff are required")

    shipment = Shipment(
        id=await next_id(repo, IdPrefix.LOAD),
        title=data.title or "",
        pickup=pickup,
        dropoff=dropoff,
        ready_date=data.ready_date,
        weight_kg=data.weight_kg or 0,
        volume_m3=data.volume_m3 or 0,
        cross_border=bool(data.cross_border),
        service=data.service or "",
        adr=bool(data.adr),
        notes=data.notes or "",
        status=ShipmentStatus.OPEN.value,
        hidden=False,
        owner_id=owner_id or data.owner_id,
        created_at=utcnow(),
    )
    repo.add(shipment)
    await repo.flush()
    await audit_log.record(repo, actor, "shipment", shipment.id, "Created shipment")
    await repo.commit()

    logger.info("Shipment %s created: %s -> %s", shipment.id, pickup, dropoff)
    (publisher or get_publisher()).emit_public(EventName.SHIPMENT_NEW.value, dump(shipment_view(shipment)))
    return shipment


async def get_shipment(repo: MarketRepository, shipment_id: str) -> Shipment:
    shipment = await repo.get_shipment(shipment_id)
    if shipment is None:
        raise NotFoundError("shipment not found")
    return shipment


def build_filters(
    status: Optional[str] = None,
    pickup_contains: Optional[str] = None,
    dropoff_contains: Optional[str] = None,
    service: Optional[str] = None,
    adr: Optional[bool] = None,
    earliest_date=None,
) -> ShipmentFilters:
    """Normalise raw feed parameters; blank strings mean "no filter"."""
    status = status if (status or "").strip() else None
    if status is not None and status not in {s.value for s in ShipmentStatus}:
        raise ValidationError(f"invalid status: {status}")
    return ShipmentFilters(
        status=status,
        pickup_contains=(pickup_contains or "").strip() or None,
        dropoff_contains=(dropoff_contains or "").strip() or None,
        service=(service or "").strip() or None,
        adr=adr,
        earliest_date=earliest_date,
    )


async def query_shipments(
    repo: MarketRepository,
    filters: ShipmentFilters,
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
) -> ShipmentPage:
    """One page of the visible feed, newest first.

    Pages are keyed on (created_at, id) descending, so following
    ``next_cursor`` until it is None yields every match exactly once.
    """
    settings = get_settings()
    if limit is None:
        limit = settings.page_size_default
    limit = max(1, min(int(limit), settings.page_size_max))
    after = decode_cursor(cursor) if cursor else None

    rows = await repo.query_shipments(filters, after, limit + 1)
    items = rows[:limit]
    next_cursor = None
    if len(rows) > limit:
        last = items[-1]
        next_cursor = encode_cursor(last.created_at, last.id)
    return ShipmentPage(items=items, next_cursor=next_cursor)


async def set_hidden(repo: MarketRepository, shipment_id: str, hidden: bool) -> Shipment:
    """Moderation: hide or reveal a shipment and its flags."""
    shipment = await get_shipment(repo, shipment_id)
    shipment.hidden = hidden
    for flag in await repo.flags_for_shipment(shipment_id):
        flag.hidden = hidden
    await audit_log.record(repo, "admin", "flag", shipment_id, f"hidden={hidden}")
    await repo.commit()
    return shipment


async def flag_shipment(
    repo: MarketRepository,
    shipment_id: str,
    reason: str,
    reporter: Optional[str] = None,
) -> Flag:
    """Report a shipment for moderation; hiding is an admin decision."""
    shipment = await get_shipment(repo, shipment_id)
    flag = Flag(
        id=await next_id(repo, IdPrefix.FLAG),
        shipment_id=shipment.id,
        reason=(reason or "").strip() or "Content",
        reporter=reporter,
        hidden=bool(shipment.hidden),
        created_at=utcnow(),
    )
    repo.add(flag)
    await repo.flush()
    await audit_log.record(repo, reporter, "flag", shipment.id, f"Flagged: {flag.reason}")
    await repo.commit()
    return flag
