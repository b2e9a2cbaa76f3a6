"""
Routes Journal d'activité (audit des mutations)
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Request

from routes.deps import get_store
from services.activity_logger import get_activity_logs
from services.permissions import ALL_SCOPE, get_ferme_scope, require_permission

router = APIRouter(prefix="/activity", tags=["Activité"])


@router.get("")
async def list_activity(
    request: Request,
    entity_type: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    skip: int = Query(0, ge=0),
    user: dict = Depends(require_permission("activity.view")),
    store=Depends(get_store)
):
    """Entrées les plus récentes, limitées à la ferme de l'utilisateur"""
    scope = get_ferme_scope(user, request)
    return await get_activity_logs(
        store,
        entity_type=entity_type,
        action=action,
        ferme_id=None if scope == ALL_SCOPE else scope,
        limit=limit,
        skip=skip,
    )
