"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Orchestrateur des mutations d'ouvriers                                      ║
║                                                                              ║
║  SEUL CE MODULE écrit worker.chambre ET room.liste_occupants                 ║
║                                                                              ║
║  Chaque opération = UN lot atomique (ouvrier + chambres + ferme):            ║
║  - create_worker / update_worker / delete_worker                             ║
║  - bulk_delete_workers (erreurs collectées par ouvrier)                      ║
║  - bulk_import_workers (occupation laissée au balayage de réparation)        ║
║                                                                              ║
║  Genre incompatible = affectation IGNORÉE, jamais d'échec global             ║
║  Capacité = indicative, une chambre pleine accepte quand même l'ouvrier      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from models.worker import MutationResult, WorkerCreate
from services.activity_logger import log_activity
from services.entity_store import FERMES, ROOMS, WORKERS, WriteBatch
from services.errors import NotFoundError, OccupancyValidationError, PartialBulkFailure
from services.ferme_stats import count_active_workers
from services.occupancy_rules import (
    can_assign,
    find_room,
    gender_to_room_genre,
    is_active,
    normalize_worker_fields,
    room_has_space,
)

logger = logging.getLogger("worker_mutations")

STORED_ONLY_FIELDS = ("id", "_id", "created_at", "updated_at")


class _RoomState:
    """Liste d'occupants en cours de modification dans un lot"""

    def __init__(self, room: dict):
        self.room = room
        self.occupants = list(room.get("liste_occupants") or [])
        self.count = room.get("occupants_actuels", 0) or 0

    def remove(self, worker_id: str, cin: str = None):
        self.occupants = [
            o for o in self.occupants
            if o != worker_id and not (cin and o == cin)
        ]
        self.count = max(0, self.count - 1)

    def append(self, worker_id: str):
        if worker_id not in self.occupants:
            self.occupants.append(worker_id)
            self.count += 1

    def patch(self) -> dict:
        return {"liste_occupants": self.occupants, "occupants_actuels": self.count}


class WorkerMutationService:

    def __init__(self, store, live):
        self.store = store
        self.live = live

    # ==================== HELPERS ====================

    def _require_worker(self, worker_id: str) -> dict:
        worker = self.live.find_worker(worker_id)
        if not worker:
            raise NotFoundError(WORKERS, worker_id)
        return worker

    def _check_assignment(self, worker: dict, room: dict, warnings: List[str]):
        """
        Lève OccupancyValidationError si la chambre est incompatible.
        Une chambre pleine n'est qu'un avertissement.
        """
        if not can_assign(worker, room):
            raise OccupancyValidationError(
                f"La chambre {room.get('numero')} est réservée aux {room.get('genre')}, "
                f"mais l'ouvrier est un(e) {worker.get('sexe')}. "
                f"L'affectation de chambre a été annulée.",
                worker_id=worker.get("id"),
                room_id=room.get("id"),
            )

        if not room_has_space(room):
            warnings.append(
                f"Chambre {room.get('numero')} pleine "
                f"({room.get('occupants_actuels', 0)}/{room.get('capacite_totale', 0)})"
            )

    async def _commit(self, batch: WriteBatch, *collections: str):
        await self.store.commit(batch)
        await self.live.refresh(*collections)

    async def _audit(self, actor: Optional[dict], action: str, entity_id: str = None,
                     entity_name: str = None, details: dict = None):
        try:
            await log_activity(
                self.store, actor, action, "worker",
                entity_id=entity_id, entity_name=entity_name, details=details
            )
        except Exception as e:
            logger.warning(f"[AUDIT] Journalisation {action} impossible: {e}")

    # ==================== CRÉATION ====================

    async def create_worker(self, data: dict, actor: dict = None) -> MutationResult:
        worker = normalize_worker_fields(data)
        batch = WriteBatch()
        worker_id = batch.add(WORKERS, worker)
        worker["id"] = worker_id
        warnings: List[str] = []

        if is_active(worker) and worker.get("chambre"):
            room = find_room(self.live.rooms, worker.get("ferme_id"), worker["chambre"])
            if not room:
                logger.warning(f"[CREATE] Chambre {worker['chambre']} introuvable, ouvrier non logé")
            else:
                try:
                    self._check_assignment(worker, room, warnings)
                except OccupancyValidationError as e:
                    # Création maintenue, seule l'affectation est ignorée
                    logger.warning(f"[CREATE] {e}")
                else:
                    state = _RoomState(room)
                    if worker_id not in state.occupants:
                        state.append(worker_id)
                        batch.update(ROOMS, room["id"], state.patch())
                        logger.info(
                            f"[CREATE] {worker.get('nom')} ajouté à la chambre {room['numero']} "
                            f"({gender_to_room_genre(worker.get('sexe'))})"
                        )

        await self._commit(batch, WORKERS, ROOMS)
        await self._audit(actor, "create", worker_id, worker.get("nom"))

        return MutationResult(
            success=True,
            message=f"Ouvrier {worker.get('nom')} ajouté",
            worker_id=worker_id,
            warnings=warnings,
            success_count=1,
        )

    # ==================== MISE À JOUR ====================

    async def update_worker(self, worker_id: str, patch: dict, actor: dict = None) -> MutationResult:
        old = self._require_worker(worker_id)
        new = normalize_worker_fields({**old, **patch}, previous=old)
        update_doc = {k: v for k, v in new.items() if k not in STORED_ONLY_FIELDS}
        warnings: List[str] = []

        room_changed = (old.get("ferme_id"), old.get("chambre")) != (new.get("ferme_id"), new.get("chambre"))
        status_changed = old.get("statut") != new.get("statut")
        got_exit_date = not old.get("date_sortie") and bool(new.get("date_sortie"))

        states: Dict[str, _RoomState] = {}
        if room_changed or status_changed or got_exit_date:
            logger.info(
                f"[UPDATE] Occupation à revoir pour {old.get('nom')}: chambre={room_changed} "
                f"statut={status_changed} sortie={got_exit_date}"
            )
            self._transition(old, new, update_doc, states, warnings)

        batch = WriteBatch()
        batch.update(WORKERS, worker_id, update_doc)
        for room_id, state in states.items():
            batch.update(ROOMS, room_id, state.patch())

        await self._commit(batch, WORKERS, ROOMS)
        await self._audit(actor, "update", worker_id, new.get("nom"), {
            "statut": update_doc.get("statut"),
            "chambre": update_doc.get("chambre"),
        })

        return MutationResult(
            success=True,
            message=f"Ouvrier {new.get('nom')} mis à jour",
            worker_id=worker_id,
            warnings=warnings,
            success_count=1,
        )

    def _transition(self, old: dict, new: dict, update_doc: dict,
                    states: Dict[str, _RoomState], warnings: List[str]):
        """
        (a) retire l'ouvrier de son ancienne chambre s'il y était actif
        (b) l'ajoute à la nouvelle si actif et compatible, sinon vide chambre/secteur
        """
        worker_id = old["id"]
        rooms = self.live.rooms

        def state_for(room: dict) -> _RoomState:
            if room["id"] not in states:
                states[room["id"]] = _RoomState(room)
            return states[room["id"]]

        if is_active(old) and old.get("chambre"):
            old_room = find_room(rooms, old.get("ferme_id"), old["chambre"])
            if old_room:
                state_for(old_room).remove(worker_id)
                logger.info(f"[UPDATE] {old.get('nom')} retiré de la chambre {old_room['numero']}")

        if is_active(new) and new.get("chambre"):
            new_room = find_room(rooms, new.get("ferme_id"), new["chambre"])
            if not new_room:
                warnings.append(f"Chambre {new['chambre']} introuvable dans la ferme")
                return
            try:
                self._check_assignment(new, new_room, warnings)
            except OccupancyValidationError as e:
                logger.warning(f"[UPDATE] {e}")
                warnings.append(str(e))
                update_doc["chambre"] = ""
                update_doc["secteur"] = ""
                return
            state_for(new_room).append(worker_id)
            logger.info(f"[UPDATE] {old.get('nom')} ajouté à la chambre {new_room['numero']}")
        elif not is_active(new):
            logger.info(f"[UPDATE] {old.get('nom')} inactif, retiré de sa chambre")

    # ==================== SUPPRESSION ====================

    async def delete_worker(self, worker_id: str, actor: dict = None) -> MutationResult:
        worker = self._require_worker(worker_id)
        logger.info(f"[DELETE] Suppression de {worker.get('nom')} (CIN: {worker.get('cin')})")

        batch = WriteBatch()
        batch.delete(WORKERS, worker_id)

        if worker.get("chambre") and is_active(worker):
            room = find_room(self.live.rooms, worker.get("ferme_id"), worker["chambre"])
            if room:
                state = _RoomState(room)
                state.remove(worker_id, worker.get("cin"))
                if state.count != len(state.occupants):
                    logger.warning(
                        f"[DELETE] Incohérence chambre {room['numero']}: compteur {state.count}, "
                        f"liste {len(state.occupants)}. Corrigée."
                    )
                state.count = min(state.count, len(state.occupants))
                batch.update(ROOMS, room["id"], state.patch())
            else:
                logger.warning(f"[DELETE] Chambre {worker['chambre']} introuvable pour {worker.get('nom')}")

        if is_active(worker):
            ferme = self.live.find_ferme(worker.get("ferme_id"))
            if ferme:
                batch.update(FERMES, ferme["id"], {
                    "total_ouvriers": count_active_workers(
                        self.live.workers, ferme["id"], exclude_ids=[worker_id]
                    )
                })

        await self._commit(batch, WORKERS, ROOMS, FERMES)
        await self._audit(actor, "delete", worker_id, worker.get("nom"))

        return MutationResult(
            success=True,
            message=f"Ouvrier {worker.get('nom')} supprimé avec succès. "
                    f"Les chambres et statistiques liées ont été mises à jour.",
            worker_id=worker_id,
            success_count=1,
        )

    async def bulk_delete_workers(self, worker_ids: Iterable[str], actor: dict = None) -> MutationResult:
        ids = list(dict.fromkeys(worker_ids))
        logger.info(f"[BULK_DELETE] Suppression de {len(ids)} ouvriers")

        batch = WriteBatch()
        states: Dict[str, _RoomState] = {}
        deleted: List[dict] = []
        errors: List[str] = []

        for worker_id in ids:
            try:
                worker = self._require_worker(worker_id)
                batch.delete(WORKERS, worker_id)

                if worker.get("chambre") and is_active(worker):
                    room = find_room(self.live.rooms, worker.get("ferme_id"), worker["chambre"])
                    if room:
                        state = states.setdefault(room["id"], _RoomState(room))
                        state.remove(worker_id, worker.get("cin"))

                deleted.append(worker)
            except NotFoundError:
                errors.append(f"Ouvrier avec ID {worker_id} non trouvé")
            except Exception as e:
                logger.error(f"[BULK_DELETE] Préparation impossible pour {worker_id}: {e}")
                errors.append(f"{worker_id}: {e}")

        for room_id, state in states.items():
            state.count = min(state.count, len(state.occupants))
            batch.update(ROOMS, room_id, state.patch())

        if deleted:
            await self.store.commit(batch)
            logger.info(f"[BULK_DELETE] {len(deleted)} ouvriers supprimés")

        # Statistiques des fermes touchées, hors lot
        deleted_ids = [w["id"] for w in deleted]
        for ferme_id in dict.fromkeys(w.get("ferme_id") for w in deleted):
            ferme = self.live.find_ferme(ferme_id)
            if not ferme:
                continue
            try:
                await self.store.update(FERMES, ferme_id, {
                    "total_ouvriers": count_active_workers(
                        self.live.workers, ferme_id, exclude_ids=deleted_ids
                    )
                })
            except Exception as e:
                logger.error(f"[BULK_DELETE] Statistiques de la ferme {ferme_id} non mises à jour: {e}")
                errors.append(f"Ferme {ferme.get('nom', ferme_id)}: {e}")

        if deleted:
            await self.live.refresh(WORKERS, ROOMS, FERMES)
            await self._audit(actor, "bulk_delete", details={"worker_ids": deleted_ids})

        return self._bulk_result(len(deleted), errors, "supprimé(s)")

    # ==================== IMPORT ====================

    async def bulk_import_workers(self, records: List[dict], actor: dict = None) -> MutationResult:
        """
        Un lot de nouveaux ouvriers. Les chambres ne sont PAS modifiées ici:
        beaucoup d'ouvriers pour peu de chambres = conflits dans le lot.
        Le balayage de réparation rattache les ouvriers après le commit.
        """
        logger.info(f"[BULK_IMPORT] Import de {len(records)} ouvriers")

        batch = WriteBatch()
        imported = 0
        errors: List[str] = []

        for record in records:
            try:
                valid = WorkerCreate.model_validate(record).model_dump(mode="json")
                worker = normalize_worker_fields(valid)
                batch.add(WORKERS, worker)
                imported += 1
                if is_active(worker) and worker.get("chambre"):
                    logger.debug(f"[BULK_IMPORT] {worker['nom']} -> chambre {worker['chambre']} (différé)")
            except ValidationError as e:
                reason = "; ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
                )
                logger.warning(f"[BULK_IMPORT] Ouvrier {record.get('nom') or '?'} invalide: {reason}")
                errors.append(f"{record.get('nom') or '?'}: {reason}")
            except Exception as e:
                logger.error(f"[BULK_IMPORT] Ouvrier {record.get('nom', '?')} rejeté: {e}")
                errors.append(f"{record.get('nom') or '?'}: {e}")

        if imported:
            await self._commit(batch, WORKERS)
            await self._audit(actor, "bulk_import", details={"count": imported})

        return self._bulk_result(imported, errors, "importé(s)")

    @staticmethod
    def _bulk_result(success_count: int, errors: List[str], verb: str) -> MutationResult:
        if errors:
            failure = PartialBulkFailure(success_count, errors)
            logger.warning(f"[BULK] Terminé avec erreurs: {failure}")
            message = f"Opération terminée avec quelques erreurs: {failure}"
        else:
            message = f"{success_count} ouvrier(s) {verb} avec succès"

        return MutationResult(
            success=success_count > 0,
            message=message,
            errors=errors,
            success_count=success_count,
            error_count=len(errors),
        )
