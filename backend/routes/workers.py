"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Routes Ouvriers                                                             ║
║                                                                              ║
║  Toutes les écritures passent par WorkerMutationService                      ║
║  Isolation stricte: admin/user limités à leur ferme                          ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from models.worker import (
    BulkDeleteRequest,
    BulkImportRequest,
    MutationResult,
    WorkerCreate,
    WorkerUpdate,
)
from routes.deps import get_live, get_mutations
from services.errors import BatchCommitError, NotFoundError
from services.permissions import (
    filter_by_scope,
    get_ferme_scope,
    require_permission,
    validate_ferme_access,
)
from services.worker_filters import (
    WorkerFilters,
    available_entry_years,
    average_ages,
    filter_workers,
)

router = APIRouter(prefix="/workers", tags=["Ouvriers"])


def _raise_http(e: Exception):
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail="Ouvrier non trouvé")
    if isinstance(e, BatchCommitError):
        raise HTTPException(status_code=500, detail=f"Erreur lors de la sauvegarde: {e}")
    raise e


def _scoped_worker(live, user: dict, worker_id: str) -> dict:
    worker = live.find_worker(worker_id)
    if not worker:
        raise HTTPException(status_code=404, detail="Ouvrier non trouvé")
    validate_ferme_access(user, worker.get("ferme_id"))
    return worker


@router.get("")
async def list_workers(
    request: Request,
    filters: WorkerFilters = Depends(),
    user: dict = Depends(require_permission("workers.view")),
    live=Depends(get_live)
):
    """
    Liste des ouvriers visibles (ferme de l'utilisateur, ou toutes pour superadmin)
    + moyennes d'âge des actifs filtrés.
    """
    scope = get_ferme_scope(user, request)
    visible = filter_by_scope(live.workers, scope)
    workers = filter_workers(visible, filters)

    return {
        "workers": workers,
        "count": len(workers),
        "active": sum(1 for w in workers if w.get("statut") == "actif"),
        "entry_years": available_entry_years(visible),
        **average_ages(workers),
    }


@router.post("", response_model=MutationResult)
async def create_worker(
    data: WorkerCreate,
    user: dict = Depends(require_permission("workers.create")),
    mutations=Depends(get_mutations)
):
    validate_ferme_access(user, data.ferme_id)
    try:
        return await mutations.create_worker(data.model_dump(mode="json"), actor=user)
    except (NotFoundError, BatchCommitError) as e:
        _raise_http(e)


@router.put("/{worker_id}", response_model=MutationResult)
async def update_worker(
    worker_id: str,
    data: WorkerUpdate,
    user: dict = Depends(require_permission("workers.edit")),
    live=Depends(get_live),
    mutations=Depends(get_mutations)
):
    _scoped_worker(live, user, worker_id)
    patch = {k: v for k, v in data.model_dump(mode="json").items() if v is not None}
    if "ferme_id" in patch:
        validate_ferme_access(user, patch["ferme_id"])

    try:
        return await mutations.update_worker(worker_id, patch, actor=user)
    except (NotFoundError, BatchCommitError) as e:
        _raise_http(e)


@router.delete("/{worker_id}", response_model=MutationResult)
async def delete_worker(
    worker_id: str,
    user: dict = Depends(require_permission("workers.delete")),
    live=Depends(get_live),
    mutations=Depends(get_mutations)
):
    _scoped_worker(live, user, worker_id)
    try:
        return await mutations.delete_worker(worker_id, actor=user)
    except (NotFoundError, BatchCommitError) as e:
        _raise_http(e)


@router.post("/bulk-delete", response_model=MutationResult)
async def bulk_delete_workers(
    data: BulkDeleteRequest,
    user: dict = Depends(require_permission("workers.delete")),
    live=Depends(get_live),
    mutations=Depends(get_mutations)
):
    """Les ouvriers hors de la ferme de l'utilisateur sont refusés (403)"""
    for worker_id in data.worker_ids:
        worker = live.find_worker(worker_id)
        if worker:
            validate_ferme_access(user, worker.get("ferme_id"))

    try:
        return await mutations.bulk_delete_workers(data.worker_ids, actor=user)
    except BatchCommitError as e:
        _raise_http(e)


@router.post("/bulk-import", response_model=MutationResult)
async def bulk_import_workers(
    data: BulkImportRequest,
    user: dict = Depends(require_permission("workers.import")),
    mutations=Depends(get_mutations)
):
    for record in data.workers:
        if record.get("ferme_id"):
            validate_ferme_access(user, record["ferme_id"])

    try:
        return await mutations.bulk_import_workers(data.workers, actor=user)
    except BatchCommitError as e:
        _raise_http(e)
