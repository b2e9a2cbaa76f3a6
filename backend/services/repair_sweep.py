"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Balayage de réparation                                                      ║
║                                                                              ║
║  - Déclenché (debounce) après chaque changement de workers / rooms           ║
║  - "Nettoyer maintenant" = déclenchement manuel immédiat                     ║
║  - UN SEUL balayage à la fois: un déclenchement pendant un balayage          ║
║    en cours est ignoré (pas d'annulation des écritures en vol)               ║
║  - Auto-correction des statuts au premier chargement des ouvriers            ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import asyncio
import logging
from typing import List, Optional

from config import REPAIR_SWEEP_DELAY_SECONDS, now_iso
from services.entity_store import ROOMS, WORKERS
from services.occupancy_reconciler import apply_room_patches, compute_attach_patches, reconcile
from services.occupancy_rules import INACTIF, is_active

logger = logging.getLogger("repair_sweep")


async def heal_exit_status(store, workers: List[dict]) -> int:
    """
    Passe en "inactif" les ouvriers avec une date de sortie encore "actif".
    Retourne le nombre d'ouvriers corrigés.
    """
    inconsistent = [w for w in workers if w.get("date_sortie") and is_active(w)]
    if not inconsistent:
        return 0

    logger.info(f"[STATUS_HEAL] {len(inconsistent)} ouvriers sortis encore actifs")
    healed = 0
    for worker in inconsistent:
        try:
            await store.update(WORKERS, worker["id"], {"statut": INACTIF})
            healed += 1
        except Exception as e:
            logger.error(f"[STATUS_HEAL] Échec pour {worker.get('nom')}: {e}")
    return healed


class RepairSweep:

    def __init__(self, store, live, delay: float = REPAIR_SWEEP_DELAY_SECONDS):
        self.store = store
        self.live = live
        self.delay = delay
        self.last_result: Optional[dict] = None
        self._busy = False
        self._timer: Optional[asyncio.Task] = None
        self._tasks = set()

    @property
    def busy(self) -> bool:
        return self._busy

    def attach(self):
        """Branche le balayage sur les changements du snapshot"""
        self.live.on_change(self._on_change)

    def _on_change(self, collection: str, first_load: bool):
        if collection == WORKERS and first_load:
            self._spawn(self.heal_statuses())
        if collection in (WORKERS, ROOMS) and self.live.workers and self.live.rooms:
            self.schedule()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ==================== DÉCLENCHEMENT ====================

    def schedule(self):
        """Relance le compte à rebours: un seul balayage après une rafale de changements"""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._spawn(self._delayed_run())

    async def _delayed_run(self):
        await asyncio.sleep(self.delay)
        # Au-delà de ce point, un nouveau schedule() ne peut plus annuler ce balayage
        self._timer = None
        await self.run()

    async def clean_now(self) -> dict:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return await self.run()

    # ==================== BALAYAGE ====================

    async def run(self) -> dict:
        if self._busy:
            logger.info("[REPAIR] Balayage déjà en cours, déclenchement ignoré")
            return {"skipped": True, "rooms_patched": 0, "rooms_attached": 0}

        self._busy = True
        try:
            result = await reconcile(self.store, list(self.live.workers), list(self.live.rooms))
            if result["rooms_patched"]:
                await self.live.refresh(ROOMS)

            attach = compute_attach_patches(self.live.workers, self.live.rooms)
            attached = await apply_room_patches(self.store, attach) if attach else 0
            if attached:
                await self.live.refresh(ROOMS)

            if result["rooms_patched"] or attached:
                logger.info(
                    f"[REPAIR] {result['rooms_patched']} chambres nettoyées, "
                    f"{attached} chambres complétées"
                )
            else:
                logger.info("[REPAIR] Toutes les chambres sont déjà synchronisées")

            self.last_result = {
                "skipped": False,
                "rooms_patched": result["rooms_patched"],
                "rooms_attached": attached,
                "finished_at": now_iso(),
            }
            return self.last_result
        finally:
            self._busy = False

    async def heal_statuses(self) -> int:
        healed = await heal_exit_status(self.store, self.live.workers)
        if healed:
            await self.live.refresh(WORKERS)
        return healed

    async def stop(self):
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._timer = None
