"""
Routes Fermes: liste, statistiques du tableau de bord, recalcul des agrégats.
"""

from fastapi import APIRouter, Depends, Request

from routes.deps import get_live, get_store
from services.entity_store import FERMES
from services.ferme_stats import dashboard_stats, recompute_ferme_totals
from services.permissions import ALL_SCOPE, get_ferme_scope, require_permission

router = APIRouter(prefix="/fermes", tags=["Fermes"])


@router.get("")
async def list_fermes(
    request: Request,
    user: dict = Depends(require_permission("fermes.view")),
    live=Depends(get_live)
):
    scope = get_ferme_scope(user, request)
    fermes = live.fermes if scope == ALL_SCOPE else [f for f in live.fermes if f.get("id") == scope]
    return {"fermes": fermes, "count": len(fermes)}


@router.get("/stats")
async def get_stats(
    request: Request,
    user: dict = Depends(require_permission("fermes.view")),
    live=Depends(get_live)
):
    scope = get_ferme_scope(user, request)
    ferme_id = None if scope == ALL_SCOPE else scope
    return {
        "ferme_id": ferme_id,
        "stats": dashboard_stats(live.workers, live.rooms, ferme_id),
    }


@router.post("/recompute")
async def recompute(
    user: dict = Depends(require_permission("fermes.manage")),
    live=Depends(get_live),
    store=Depends(get_store)
):
    """Recalcule total_ouvriers / total_chambres de toutes les fermes"""
    results = await recompute_ferme_totals(store, live)
    await live.refresh(FERMES)
    return {"success": not results["errors"], **results}
