"""
Service de journalisation des activités
"""

import uuid
from config import now_iso

ACTIVITY_LOGS = "activity_logs"


async def log_activity(
    store,
    user: dict,
    action: str,
    entity_type: str,
    entity_id: str = None,
    entity_name: str = None,
    details: dict = None
):
    """
    Enregistre une activité dans le journal

    Actions: create, update, delete, bulk_delete, bulk_import, repair, login, logout
    Entity types: worker, room, ferme, user, system
    """
    user = user or {}
    log_entry = {
        "id": str(uuid.uuid4()),
        "user_id": user.get("id", "system"),
        "user_email": user.get("email", "system"),
        "user_nom": user.get("nom", "Système"),
        "ferme_id": user.get("ferme_id"),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "entity_name": entity_name,
        "details": details or {},
        "created_at": now_iso()
    }

    await store.add(ACTIVITY_LOGS, log_entry)
    return log_entry


async def get_activity_logs(
    store,
    entity_type: str = None,
    action: str = None,
    ferme_id: str = None,
    limit: int = 100,
    skip: int = 0
):
    """
    Récupère les logs d'activité les plus récents avec filtres optionnels
    """
    query = {}

    if entity_type:
        query["entity_type"] = entity_type
    if action:
        query["action"] = action
    if ferme_id:
        query["ferme_id"] = ferme_id

    logs = await store.find_recent(ACTIVITY_LOGS, query, "created_at", limit=limit, skip=skip)
    total = await store.count(ACTIVITY_LOGS, query)

    return {"logs": logs, "total": total, "limit": limit, "skip": skip}
