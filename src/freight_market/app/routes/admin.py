"""Admin routes: metrics, KYB verification, users, moderation, activity log."""

from fastapi import APIRouter, Depends, Query

from freight_market.app.routes.auth import require_role
from freight_market.domain.enums import UserRole
from freight_market.domain.schemas import BanRequest, HideRequest, VerifyDecision
from freight_market.infra.repository import MarketRepository, get_repository
from freight_market.services import moderation, seed, shipment_store
from freight_market.services.serializers import audit_log_view, dump, user_view

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_role(UserRole.ADMIN.value))],
)


@router.get("/metrics")
async def metrics(repo: MarketRepository = Depends(get_repository)):
    return {"ok": True, "data": await repo.counts()}


@router.get("/verify")
async def verification_queue(repo: MarketRepository = Depends(get_repository)):
    return {"ok": True, "data": await moderation.pending_verifications(repo)}


@router.post("/verify/{user_id}")
async def verify_transporter(
    user_id: str,
    data: VerifyDecision,
    repo: MarketRepository = Depends(get_repository),
):
    user = await moderation.decide_verification(repo, user_id, data.decision)
    return {"ok": True, "data": {"userId": user.id, "verified": bool(user.verified)}}


@router.get("/users")
async def list_users(repo: MarketRepository = Depends(get_repository)):
    return {"ok": True, "data": [dump(user_view(u)) for u in await repo.list_users()]}


@router.post("/users/{user_id}/ban")
async def ban_user(
    user_id: str,
    data: BanRequest,
    repo: MarketRepository = Depends(get_repository),
):
    user = await moderation.set_banned(repo, user_id, data.ban)
    return {"ok": True, "data": {"userId": user.id, "banned": bool(user.banned)}}


@router.get("/transporters")
async def transporters(repo: MarketRepository = Depends(get_repository)):
    return {"ok": True, "data": await moderation.verified_transporters(repo)}


@router.get("/flagged")
async def flagged(repo: MarketRepository = Depends(get_repository)):
    return {"ok": True, "data": await moderation.flagged_shipments(repo)}


@router.post("/flagged/{shipment_id}/hide")
async def hide_shipment(
    shipment_id: str,
    data: HideRequest,
    repo: MarketRepository = Depends(get_repository),
):
    shipment = await shipment_store.set_hidden(repo, shipment_id, data.hide)
    return {"ok": True, "data": {"shipmentId": shipment.id, "hidden": bool(shipment.hidden)}}


@router.get("/logs")
async def activity_log(
    limit: int = Query(200, ge=1, le=1000),
    repo: MarketRepository = Depends(get_repository),
):
    entries = await moderation.recent_activity(repo, limit)
    return {"ok": True, "data": [dump(audit_log_view(e)) for e in entries]}


@router.delete("/wipe")
async def wipe(repo: MarketRepository = Depends(get_repository)):
    await seed.wipe(repo)
    return {"ok": True, "message": "All demo data wiped"}
