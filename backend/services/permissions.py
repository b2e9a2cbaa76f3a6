"""
Système de permissions par rôle + isolation par ferme.

- superadmin: toutes les fermes, peut choisir une ferme via X-Ferme-Scope
- admin: sa ferme uniquement, lecture + écriture
- user: sa ferme uniquement, lecture seule
"""

import logging
from typing import Dict, List, Optional
from fastapi import Depends, HTTPException, Request

logger = logging.getLogger("permissions")

ALL_SCOPE = "ALL"

# ════════════════════════════════════════════════════════════════════════
# ALL PERMISSION KEYS
# ════════════════════════════════════════════════════════════════════════

ALL_PERMISSION_KEYS = [
    "workers.view",
    "workers.create",
    "workers.edit",
    "workers.delete",
    "workers.import",

    "rooms.view",
    "rooms.repair",

    "fermes.view",
    "fermes.manage",

    "activity.view",
]

ROLE_PRESETS: Dict[str, Dict[str, bool]] = {
    "superadmin": {k: True for k in ALL_PERMISSION_KEYS},

    "admin": {
        "workers.view": True, "workers.create": True, "workers.edit": True,
        "workers.delete": True, "workers.import": True,
        "rooms.view": True, "rooms.repair": True,
        "fermes.view": True, "fermes.manage": False,
        "activity.view": True,
    },

    "user": {
        "workers.view": True, "workers.create": False, "workers.edit": False,
        "workers.delete": False, "workers.import": False,
        "rooms.view": True, "rooms.repair": False,
        "fermes.view": True, "fermes.manage": False,
        "activity.view": False,
    },
}


def user_has_permission(user: dict, key: str) -> bool:
    if user.get("role") == "superadmin":
        return True
    return ROLE_PRESETS.get(user.get("role"), ROLE_PRESETS["user"]).get(key, False) is True


# ════════════════════════════════════════════════════════════════════════
# ISOLATION PAR FERME
# ════════════════════════════════════════════════════════════════════════

def get_ferme_scope(user: dict, request: Optional[Request] = None) -> str:
    """
    Ferme visible pour la requête.
    - superadmin: en-tête X-Ferme-Scope (id de ferme ou ALL), ALL par défaut
    - autres: toujours user.ferme_id
    """
    if user.get("role") == "superadmin":
        if request is not None:
            return request.headers.get("x-ferme-scope", ALL_SCOPE) or ALL_SCOPE
        return ALL_SCOPE

    ferme_id = user.get("ferme_id")
    if not ferme_id:
        raise HTTPException(status_code=403, detail="Aucune ferme associée à ce compte")
    return ferme_id


def filter_by_scope(docs: List[dict], scope: str, field: str = "ferme_id") -> List[dict]:
    if scope == ALL_SCOPE:
        return list(docs)
    return [d for d in docs if d.get(field) == scope]


def validate_ferme_access(user: dict, ferme_id: Optional[str]):
    """403 si l'utilisateur écrit dans une ferme qui n'est pas la sienne"""
    if user.get("role") == "superadmin":
        return
    if not ferme_id or ferme_id != user.get("ferme_id"):
        logger.warning(
            f"[FERME_DENIED] user={user.get('email')} ferme={ferme_id} "
            f"own={user.get('ferme_id')}"
        )
        raise HTTPException(status_code=403, detail="Accès refusé à cette ferme")


# ════════════════════════════════════════════════════════════════════════
# FASTAPI DEPENDENCIES
# ════════════════════════════════════════════════════════════════════════

def require_permission(permission_key: str):
    """
    FastAPI dependency factory.
    Usage: user: dict = Depends(require_permission("workers.edit"))
    """
    from routes.auth import get_current_user

    async def _check(user: dict = Depends(get_current_user)):
        if not user_has_permission(user, permission_key):
            logger.warning(
                f"[PERMISSION_DENIED] user={user.get('email')} "
                f"key={permission_key} role={user.get('role')}"
            )
            raise HTTPException(
                status_code=403,
                detail=f"Permission requise: {permission_key}"
            )
        return user

    return _check
