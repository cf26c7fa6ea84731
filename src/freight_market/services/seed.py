"""Demo data: full-store wipe and the seeded marketplace."""

import logging
from datetime import date

from freight_market.domain.enums import IdPrefix, QuoteStatus, SenderRole, ShipmentStatus, UserRole
from freight_market.domain.models import Flag, Message, Quote, Shipment, User, utcnow
from freight_market.infra.repository import MarketRepository
from freight_market.services import audit_log
from freight_market.services.booking_engine import create_booking
from freight_market.services.identity import next_id

logger = logging.getLogger(__name__)

SEED_USERS = [
    {"name": "Admin", "email": "admin@duffbros.local", "role": UserRole.ADMIN, "verified": True},
    {"name": "Acme Shipper", "email": "shipper@acme.local", "role": UserRole.SHIPPER, "verified": True},
    {
        "name": "Duff Logistics Ltd",
        "email": "ops@dufflogistics.local",
        "role": UserRole.TRANSPORTER,
        "verified": True,
        "insurance": "CMR (2026)",
    },
    # pending KYB
    {"name": "Trans-Euro Freight", "email": "ops@transeuro.local", "role": UserRole.TRANSPORTER, "verified": False},
    {
        "name": "Fast Movers UK",
        "email": "ops@fastmovers.local",
        "role": UserRole.TRANSPORTER,
        "verified": True,
        "insurance": "Goods-in-Transit (2025)",
    },
]

SEED_SHIPMENTS = [
    ("Household move — boxes & furniture", "London, UK", "Berlin, DE", 800, 6.0,
     "Tail-lift preferred. Fragile glassware.", "removals", False, ShipmentStatus.OPEN),
    ("Retail pallets (non-perishable)", "Manchester, UK", "Paris, FR", 1200, 10.5,
     "Standard service ok.", "pallet", False, ShipmentStatus.OPEN),
    ("Chilled goods — reefer", "Bristol, UK", "Vienna, AT", 1000, 9.2,
     "Keep at 4°C.", "reefer", False, ShipmentStatus.DELIVERED),
    ("Structural steel — flatbed", "Leeds, UK", "Prague, CZ", 1500, 5.5,
     "Strapping required.", "flatbed", False, ShipmentStatus.OPEN),
    ("Boxed consumer goods", "Birmingham, UK", "Lyon, FR", 900, 7.0,
     "Standard EU documentation.", "groupage", True, ShipmentStatus.OPEN),
]


async def wipe(repo: MarketRepository, actor: str = "admin") -> None:
    """Delete all demo data and reset id counters."""
    await repo.wipe()
    await audit_log.record(repo, actor, "wipe", "-", "All demo data wiped")
    await repo.commit()
    logger.warning("All demo data wiped by %s", actor)


async def _quote(repo: MarketRepository, shipment: Shipment, transporter: User, price: float,
                 eta_days: int, message: str, status: QuoteStatus) -> Quote:
    quote = Quote(
        id=await next_id(repo, IdPrefix.QUOTE),
        shipment_id=shipment.id,
        company_name=transporter.name,
        contact_email=transporter.email,
        price=price,
        eta_days=eta_days,
        message=message,
        status=status.value,
        transporter_user_id=transporter.id,
        created_at=utcnow(),
    )
    repo.add(quote)
    return quote


async def seed(repo: MarketRepository) -> dict[str, int]:
    """Replace the store with the demo marketplace; returns the store counts."""
    await repo.wipe()

    users = []
    for fields in SEED_USERS:
        user = User(
            id=await next_id(repo, IdPrefix.USER),
            name=fields["name"],
            email=fields["email"],
            role=fields["role"].value,
            verified=fields["verified"],
            banned=False,
            insurance=fields.get("insurance"),
            created_at=utcnow(),
        )
        repo.add(user)
        users.append(user)
    _admin, shipper, t1, _t2, t3 = users

    shipments = []
    for title, pickup, dropoff, weight, volume, notes, service, adr, status in SEED_SHIPMENTS:
        shipment = Shipment(
            id=await next_id(repo, IdPrefix.LOAD),
            title=title,
            pickup=pickup,
            dropoff=dropoff,
            ready_date=date.today(),
            weight_kg=weight,
            volume_m3=volume,
            cross_border=True,
            service=service,
            adr=adr,
            notes=notes,
            status=status.value,
            hidden=False,
            owner_id=shipper.id,
            created_at=utcnow(),
        )
        repo.add(shipment)
        shipments.append(shipment)
    s1, s2, _s3, s4, _s5 = shipments
    await repo.flush()

    q1 = await _quote(repo, s1, t1, 1450, 2, "Two-man team, tail-lift, customs included", QuoteStatus.ACTIVE)
    await _quote(repo, s1, t3, 1520, 3, "Standard service, customs on request", QuoteStatus.ACTIVE)

    # s2 goes through the normal booking transition
    q3 = await _quote(repo, s2, t1, 1620, 3, "Box trailer, standard service", QuoteStatus.ACCEPTED)
    await repo.flush()
    s2.status = ShipmentStatus.BOOKED.value
    result = await create_booking(repo, q3, s2)
    for role, text in (
        (SenderRole.SHIPPER, "Hi, please confirm pickup window 08:00–10:00."),
        (SenderRole.TRANSPORTER, "Confirmed. Driver will arrive ~08:30."),
    ):
        repo.add(
            Message(
                id=await next_id(repo, IdPrefix.MESSAGE),
                thread_id=result.thread_id,
                sender_role=role.value,
                sender_id=shipper.id if role == SenderRole.SHIPPER else t1.id,
                text=text,
                ts=utcnow(),
            )
        )

    repo.add(
        Flag(
            id=await next_id(repo, IdPrefix.FLAG),
            shipment_id=s4.id,
            reason="Content",
            reporter=shipper.id,
            hidden=False,
            created_at=utcnow(),
        )
    )
    await repo.flush()

    await audit_log.record(repo, "system", "seed", "-", "Demo data seeded")
    await audit_log.record(repo, "shipper", "shipment", s1.id, "Created shipment")
    await audit_log.record(repo, "transporter", "quote", q1.id, "Submitted quote")
    await audit_log.record(repo, "admin", "booking", result.booking.id, "Created booking from accepted quote")
    await repo.commit()

    counts = await repo.counts()
    logger.info("Demo data seeded: %s", counts)
    return counts
