"""
Routes Chambres: lecture, chambres disponibles, nettoyage manuel.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from models.worker import Sexe
from routes.deps import get_live, get_store, get_sweep
from services.activity_logger import log_activity
from services.occupancy_rules import available_rooms
from services.permissions import (
    filter_by_scope,
    get_ferme_scope,
    require_permission,
    validate_ferme_access,
)

router = APIRouter(prefix="/rooms", tags=["Chambres"])


@router.get("")
async def list_rooms(
    request: Request,
    user: dict = Depends(require_permission("rooms.view")),
    live=Depends(get_live)
):
    rooms = filter_by_scope(live.rooms, get_ferme_scope(user, request))
    return {"rooms": rooms, "count": len(rooms)}


@router.get("/available")
async def list_available_rooms(
    ferme_id: str = Query(..., description="Ferme de l'ouvrier"),
    sexe: Sexe = Query(..., description="homme ou femme"),
    user: dict = Depends(require_permission("rooms.view")),
    live=Depends(get_live)
):
    """Chambres compatibles (ferme + genre). Les chambres pleines sont marquées is_full."""
    validate_ferme_access(user, ferme_id)
    rooms = available_rooms(live.rooms, ferme_id, sexe.value)
    return {"rooms": rooms, "count": len(rooms)}


@router.post("/repair")
async def repair_rooms(
    user: dict = Depends(require_permission("rooms.repair")),
    sweep=Depends(get_sweep),
    store=Depends(get_store)
):
    """Nettoyer maintenant: retire les occupants inactifs ou incompatibles."""
    if sweep.busy:
        raise HTTPException(status_code=409, detail="Un nettoyage est déjà en cours")

    result = await sweep.clean_now()
    if result.get("skipped"):
        raise HTTPException(status_code=409, detail="Un nettoyage est déjà en cours")

    await log_activity(store, user, "repair", "room", details=result)

    patched = result["rooms_patched"] + result["rooms_attached"]
    message = (
        f"{patched} chambre(s) corrigée(s)" if patched
        else "Toutes les chambres sont déjà synchronisées"
    )
    return {"success": True, "message": message, **result}
