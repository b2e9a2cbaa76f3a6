"""
Snapshot en mémoire des collections workers / rooms / fermes.

Alimenté par EntityStore.subscribe (flux live) ou par refresh() après une
écriture. Les listeners sont notifiés à chaque remplacement d'une collection:
    listener(collection_name, first_load)
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from services.entity_store import WORKERS, ROOMS, FERMES

logger = logging.getLogger("live_collections")


class LiveCollections:

    def __init__(self, store, collections=(WORKERS, ROOMS, FERMES)):
        self.store = store
        self.data: Dict[str, List[dict]] = {name: [] for name in collections}
        self.loaded = set()
        self._listeners: List[Callable] = []
        self._tasks: List[asyncio.Task] = []

    @property
    def workers(self) -> List[dict]:
        return self.data.get(WORKERS, [])

    @property
    def rooms(self) -> List[dict]:
        return self.data.get(ROOMS, [])

    @property
    def fermes(self) -> List[dict]:
        return self.data.get(FERMES, [])

    def find_worker(self, worker_id: str) -> Optional[dict]:
        return next((w for w in self.workers if w.get("id") == worker_id), None)

    def find_ferme(self, ferme_id: str) -> Optional[dict]:
        return next((f for f in self.fermes if f.get("id") == ferme_id), None)

    # ==================== MISE À JOUR ====================

    def on_change(self, listener: Callable):
        self._listeners.append(listener)

    def replace(self, collection: str, docs: List[dict]):
        first_load = collection not in self.loaded
        self.data[collection] = list(docs)
        self.loaded.add(collection)

        for listener in self._listeners:
            try:
                listener(collection, first_load)
            except Exception as e:
                logger.error(f"[LIVE] Listener en échec sur {collection}: {e}")

    async def refresh(self, *collections: str):
        for name in collections or tuple(self.data):
            self.replace(name, await self.store.get_all(name))

    # ==================== FLUX LIVE ====================

    async def start(self):
        """Suit chaque collection en tâche de fond"""
        for name in self.data:
            self._tasks.append(asyncio.create_task(self._follow(name)))
        logger.info(f"[LIVE] Abonné à {', '.join(self.data)}")

    async def _follow(self, collection: str):
        async for docs in self.store.subscribe(collection):
            self.replace(collection, docs)

    async def stop(self):
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
