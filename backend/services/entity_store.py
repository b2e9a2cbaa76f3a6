"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Entity Store - collections de documents (MongoDB / Motor)                   ║
║                                                                              ║
║  - Chaque document est identifié par son champ "id" (uuid4)                  ║
║  - Le champ "_id" de MongoDB n'est JAMAIS exposé                             ║
║  - commit(batch): toutes les écritures s'appliquent ou aucune                ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import asyncio
import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional

from pymongo.errors import PyMongoError

from config import client, db, now_iso
from services.errors import BatchCommitError, NotFoundError

logger = logging.getLogger("entity_store")

WORKERS = "workers"
ROOMS = "rooms"
FERMES = "fermes"

RECONNECT_DELAY_SECONDS = 5


class WriteBatch:
    """
    Lot d'écritures multi-documents, appliqué d'un bloc par EntityStore.commit.
    Les ids des nouveaux documents sont connus avant le commit.
    """

    def __init__(self):
        self.operations: List[Dict[str, Any]] = []

    def add(self, collection: str, data: dict) -> str:
        doc_id = data.get("id") or str(uuid.uuid4())
        self.operations.append({
            "type": "add",
            "collection": collection,
            "id": doc_id,
            "data": {**data, "id": doc_id},
        })
        return doc_id

    def update(self, collection: str, doc_id: str, data: dict):
        self.operations.append({
            "type": "update",
            "collection": collection,
            "id": doc_id,
            "data": dict(data),
        })

    def delete(self, collection: str, doc_id: str):
        self.operations.append({
            "type": "delete",
            "collection": collection,
            "id": doc_id,
            "data": None,
        })

    def __len__(self):
        return len(self.operations)


class EntityStore:
    """Accès aux collections. Une instance par application."""

    def __init__(self, database=None, mongo_client=None):
        self.db = database if database is not None else db
        self.client = mongo_client if mongo_client is not None else client

    # ==================== LECTURE ====================

    async def get_all(self, collection: str, query: dict = None) -> List[dict]:
        """Collection complète, sans plafond: les snapshots doivent être exhaustifs"""
        return await self.db[collection].find(query or {}, {"_id": 0}).to_list(None)

    async def find_recent(self, collection: str, query: dict = None, sort_field: str = "created_at",
                          limit: int = 100, skip: int = 0) -> List[dict]:
        """Documents les plus récents d'abord, paginés côté MongoDB"""
        return await self.db[collection].find(query or {}, {"_id": 0}) \
            .sort(sort_field, -1) \
            .skip(skip) \
            .limit(limit) \
            .to_list(limit)

    async def count(self, collection: str, query: dict = None) -> int:
        return await self.db[collection].count_documents(query or {})

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        return await self.find_one(collection, {"id": doc_id})

    async def find_one(self, collection: str, query: dict) -> Optional[dict]:
        return await self.db[collection].find_one(query, {"_id": 0})

    async def subscribe(self, collection: str) -> AsyncIterator[List[dict]]:
        """
        Flux de snapshots complets: chargement initial, puis un snapshot
        par événement du change stream. Redémarre après une erreur driver.
        """
        while True:
            try:
                yield await self.get_all(collection)
                async with self.db[collection].watch() as stream:
                    async for _change in stream:
                        yield await self.get_all(collection)
            except PyMongoError as e:
                logger.warning(
                    f"[SUBSCRIBE] {collection} interrompu ({e}), "
                    f"reconnexion dans {RECONNECT_DELAY_SECONDS}s"
                )
                await asyncio.sleep(RECONNECT_DELAY_SECONDS)

    # ==================== ÉCRITURE ====================

    async def add(self, collection: str, doc: dict) -> str:
        doc_id = doc.get("id") or str(uuid.uuid4())
        await self.db[collection].insert_one(self._with_timestamps({**doc, "id": doc_id}))
        return doc_id

    async def update(self, collection: str, doc_id: str, patch: dict):
        result = await self.db[collection].update_one(
            {"id": doc_id},
            {"$set": {**patch, "updated_at": now_iso()}}
        )
        if result.matched_count == 0:
            raise NotFoundError(collection, doc_id)

    async def delete(self, collection: str, doc_id: str):
        await self.db[collection].delete_one({"id": doc_id})

    async def commit(self, batch: WriteBatch):
        """Applique le lot dans une transaction MongoDB (nécessite un replica set)."""
        if not len(batch):
            return

        try:
            async with await self.client.start_session() as session:
                async with session.start_transaction():
                    for op in batch.operations:
                        await self._apply(op, session)
        except NotFoundError as e:
            raise BatchCommitError(f"Écriture rejetée: {e}") from e
        except PyMongoError as e:
            logger.error(f"[BATCH] Commit de {len(batch)} écritures rejeté: {e}")
            raise BatchCommitError(str(e)) from e

        logger.info(f"[BATCH] {len(batch)} écritures appliquées")

    async def _apply(self, op: dict, session):
        collection = self.db[op["collection"]]

        if op["type"] == "add":
            await collection.insert_one(self._with_timestamps(op["data"]), session=session)
        elif op["type"] == "update":
            result = await collection.update_one(
                {"id": op["id"]},
                {"$set": {**op["data"], "updated_at": now_iso()}},
                session=session
            )
            if result.matched_count == 0:
                raise NotFoundError(op["collection"], op["id"])
        elif op["type"] == "delete":
            await collection.delete_one({"id": op["id"]}, session=session)
        else:
            raise ValueError(f"Type d'écriture inconnu: {op['type']}")

    @staticmethod
    def _with_timestamps(data: dict) -> dict:
        now = now_iso()
        doc = {"created_at": now, "updated_at": now}
        doc.update(data)
        return doc

    async def ensure_indexes(self):
        await self.db.workers.create_index("id", unique=True)
        await self.db.workers.create_index("ferme_id")
        await self.db.workers.create_index("cin")
        await self.db.rooms.create_index("id", unique=True)
        await self.db.rooms.create_index([("ferme_id", 1), ("numero", 1)], unique=True)
        await self.db.fermes.create_index("id", unique=True)
        await self.db.users.create_index("email", unique=True)
        await self.db.sessions.create_index("token")
        await self.db.sessions.create_index("expires_at")
        await self.db.activity_logs.create_index("created_at")
