"""
Routes Auth
Login / Logout / Session. La gestion des comptes se fait hors de cette API.
"""

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from datetime import datetime, timezone, timedelta
import uuid

from models.auth import UserLogin, UserResponse
from config import SESSION_DAYS, hash_password, generate_token, now_iso
from routes.deps import get_store
from services.activity_logger import log_activity
from services.permissions import ROLE_PRESETS

router = APIRouter(prefix="/auth", tags=["Auth"])
security = HTTPBearer(auto_error=False)

SESSIONS = "sessions"
USERS = "users"


# ==================== HELPERS ====================

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    store=Depends(get_store)
):
    """Récupère l'utilisateur connecté depuis le token."""
    if not credentials:
        raise HTTPException(status_code=401, detail="Non authentifié")

    session = await store.find_one(SESSIONS, {"token": credentials.credentials})

    if not session or session.get("expires_at", "") <= now_iso():
        raise HTTPException(status_code=401, detail="Session expirée")

    user = await store.get(USERS, session["user_id"])

    if not user:
        raise HTTPException(status_code=401, detail="Utilisateur non trouvé")

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Compte désactivé")

    user.pop("password", None)
    return user


# ==================== LOGIN / LOGOUT ====================

@router.post("/login")
async def login(data: UserLogin, store=Depends(get_store)):
    """Connexion utilisateur."""
    user = await store.find_one(USERS, {"email": data.email.lower().strip()})

    if not user or user.get("password") != hash_password(data.password):
        raise HTTPException(status_code=401, detail="Email ou mot de passe incorrect")

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Compte désactivé")

    token = generate_token()
    expires_at = (datetime.now(timezone.utc) + timedelta(days=SESSION_DAYS)).isoformat()

    await store.add(SESSIONS, {
        "id": str(uuid.uuid4()),
        "token": token,
        "user_id": user["id"],
        "expires_at": expires_at
    })

    await log_activity(store, user, "login", "user", entity_id=user["id"])

    return {
        "token": token,
        "user": UserResponse(**user).model_dump(),
    }


@router.post("/logout")
async def logout(
    user: dict = Depends(get_current_user),
    credentials: HTTPAuthorizationCredentials = Depends(security),
    store=Depends(get_store)
):
    session = await store.find_one(SESSIONS, {"token": credentials.credentials})
    if session:
        await store.delete(SESSIONS, session["id"])
    return {"success": True}


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    """Retourne user + permissions du rôle."""
    return {
        **UserResponse(**user).model_dump(),
        "permissions": ROLE_PRESETS.get(user.get("role"), ROLE_PRESETS["user"]),
    }
