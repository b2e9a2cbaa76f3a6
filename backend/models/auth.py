"""
Modèles Auth & Utilisateurs
Rôles: superadmin (toutes les fermes), admin et user (une ferme).
"""

from pydantic import BaseModel
from typing import Optional


VALID_ROLES = ["superadmin", "admin", "user"]


class UserLogin(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    nom: str = ""
    telephone: str = ""
    role: str = "user"
    ferme_id: Optional[str] = None
    is_active: bool = True
