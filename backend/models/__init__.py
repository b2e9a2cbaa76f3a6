"""
Modèles Pydantic
from models import WorkerCreate, WorkerUpdate, MutationResult, etc.
"""

# Auth
from .auth import (
    VALID_ROLES,
    UserLogin,
    UserResponse,
)

# Ouvriers
from .worker import (
    Sexe,
    WorkerStatus,
    MOTIFS_SORTIE,
    WorkerCreate,
    WorkerUpdate,
    BulkDeleteRequest,
    BulkImportRequest,
    MutationResult,
)

__all__ = [
    # Auth
    "VALID_ROLES",
    "UserLogin",
    "UserResponse",
    # Ouvriers
    "Sexe",
    "WorkerStatus",
    "MOTIFS_SORTIE",
    "WorkerCreate",
    "WorkerUpdate",
    "BulkDeleteRequest",
    "BulkImportRequest",
    "MutationResult",
]
