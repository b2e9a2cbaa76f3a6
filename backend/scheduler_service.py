"""
Scheduler pour les tâches automatiques
- Balayage de réparation des chambres toutes les N minutes
- Recalcul nocturne des agrégats des fermes
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import REPAIR_INTERVAL_MINUTES, SCHEDULER_TIMEZONE
from services.entity_store import FERMES
from services.ferme_stats import recompute_ferme_totals

logger = logging.getLogger("scheduler")


class TaskScheduler:
    """Gestionnaire de tâches planifiées"""

    def __init__(self, store, live, sweep):
        self.scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE)
        self.store = store
        self.live = live
        self.sweep = sweep

    def start(self):
        """Démarre le scheduler avec toutes les tâches"""
        self.scheduler.add_job(
            self.repair_rooms,
            IntervalTrigger(minutes=REPAIR_INTERVAL_MINUTES),
            id="repair_rooms",
            name="Réparation des chambres",
            replace_existing=True,
            max_instances=1
        )

        self.scheduler.add_job(
            self.recompute_fermes,
            CronTrigger(hour=2, minute=0),
            id="recompute_fermes",
            name="Recalcul des agrégats des fermes",
            replace_existing=True
        )

        self.scheduler.start()
        logger.info("Scheduler démarré avec succès")

    def stop(self):
        """Arrête le scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler arrêté")

    # ==================== TÂCHES PLANIFIÉES ====================

    async def repair_rooms(self):
        """Auto-correction des statuts puis nettoyage des chambres"""
        if self.sweep.busy:
            logger.info("[SCHEDULER] Balayage déjà en cours, passage ignoré")
            return
        try:
            healed = await self.sweep.heal_statuses()
            result = await self.sweep.run()
            logger.info(f"[SCHEDULER] Réparation: {healed} statuts corrigés, {result}")
        except Exception as e:
            logger.error(f"[SCHEDULER] Erreur réparation des chambres: {e}")

    async def recompute_fermes(self):
        try:
            results = await recompute_ferme_totals(self.store, self.live)
            await self.live.refresh(FERMES)
            logger.info(f"[SCHEDULER] Agrégats fermes: {results['updated']} mis à jour")
        except Exception as e:
            logger.error(f"[SCHEDULER] Erreur recalcul fermes: {e}")
