"""
Fixtures partagées: store en mémoire (double de EntityStore) + fabriques de documents.
"""

import asyncio
import copy
import sys
import uuid
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from services.entity_store import FERMES, ROOMS, WORKERS
from services.errors import BatchCommitError, NotFoundError
from services.live_collections import LiveCollections
from services.worker_mutations import WorkerMutationService


def run(coro):
    """Exécute une coroutine dans une boucle neuve."""
    return asyncio.run(coro)


class InMemoryEntityStore:
    """Même interface que EntityStore, sans MongoDB."""

    def __init__(self, **collections):
        self.collections = {
            name: {doc["id"]: copy.deepcopy(doc) for doc in docs}
            for name, docs in collections.items()
        }
        self.commits = []
        self.updates = []
        self.fail_commit = None
        self.fail_update_ids = set()

    def _coll(self, name):
        return self.collections.setdefault(name, {})

    @staticmethod
    def _matches(doc, query):
        return all(doc.get(k) == v for k, v in (query or {}).items())

    def docs(self, name):
        return [copy.deepcopy(d) for d in self._coll(name).values()]

    def doc(self, name, doc_id):
        return copy.deepcopy(self._coll(name).get(doc_id))

    async def get_all(self, name, query=None):
        return [d for d in self.docs(name) if self._matches(d, query)]

    async def find_recent(self, name, query=None, sort_field="created_at", limit=100, skip=0):
        docs = sorted(await self.get_all(name, query), key=lambda d: d.get(sort_field, ""), reverse=True)
        return docs[skip:skip + limit]

    async def count(self, name, query=None):
        return len(await self.get_all(name, query))

    async def get(self, name, doc_id):
        return self.doc(name, doc_id)

    async def find_one(self, name, query):
        return next((d for d in self.docs(name) if self._matches(d, query)), None)

    async def subscribe(self, name):
        yield await self.get_all(name)

    async def add(self, name, doc):
        doc_id = doc.get("id") or str(uuid.uuid4())
        self._coll(name)[doc_id] = {**copy.deepcopy(doc), "id": doc_id}
        return doc_id

    async def update(self, name, doc_id, patch):
        if doc_id in self.fail_update_ids:
            raise RuntimeError(f"permission-denied: {name}/{doc_id}")
        if doc_id not in self._coll(name):
            raise NotFoundError(name, doc_id)
        self._coll(name)[doc_id].update(copy.deepcopy(patch))
        self.updates.append((name, doc_id, copy.deepcopy(patch)))

    async def delete(self, name, doc_id):
        self._coll(name).pop(doc_id, None)

    async def commit(self, batch):
        if self.fail_commit:
            raise BatchCommitError(self.fail_commit)

        staged = copy.deepcopy(self.collections)
        for op in batch.operations:
            coll = staged.setdefault(op["collection"], {})
            if op["type"] == "add":
                coll[op["id"]] = copy.deepcopy(op["data"])
            elif op["type"] == "update":
                if op["id"] not in coll:
                    raise BatchCommitError(f"Écriture rejetée: {op['collection']}/{op['id']} introuvable")
                coll[op["id"]].update(copy.deepcopy(op["data"]))
            elif op["type"] == "delete":
                coll.pop(op["id"], None)

        self.collections = staged
        self.commits.append(copy.deepcopy(batch.operations))


# ==================== FABRIQUES ====================

def make_worker(worker_id, **fields):
    doc = {
        "id": worker_id,
        "nom": f"Ouvrier {worker_id}",
        "cin": f"CIN-{worker_id}",
        "telephone": "0600000000",
        "sexe": "homme",
        "age": 30,
        "ferme_id": "F1",
        "chambre": "",
        "secteur": "",
        "date_entree": "2024-01-01",
        "statut": "actif",
    }
    doc.update(fields)
    return doc


def make_room(room_id, numero, genre="hommes", occupants=(), **fields):
    doc = {
        "id": room_id,
        "numero": numero,
        "ferme_id": "F1",
        "genre": genre,
        "capacite_totale": 2,
        "liste_occupants": list(occupants),
        "occupants_actuels": len(occupants),
    }
    doc.update(fields)
    return doc


def make_ferme(ferme_id="F1", **fields):
    doc = {"id": ferme_id, "nom": f"Ferme {ferme_id}", "total_ouvriers": 0, "total_chambres": 0, "admins": []}
    doc.update(fields)
    return doc


def build(workers=(), rooms=(), fermes=None):
    """Store + snapshot chargé + orchestrateur"""
    store = InMemoryEntityStore(**{
        WORKERS: list(workers),
        ROOMS: list(rooms),
        FERMES: list(fermes if fermes is not None else [make_ferme()]),
    })
    live = LiveCollections(store)
    run(live.refresh())
    return store, live, WorkerMutationService(store, live)


@pytest.fixture
def dorm():
    """
    Ferme F1: chambre 101 (hommes, capacité 2, occupants [A]), chambre 201 (femmes, vide).
    Ouvrier A actif dans 101.
    """
    return build(
        workers=[make_worker("A", chambre="101")],
        rooms=[make_room("R101", "101", occupants=["A"]), make_room("R201", "201", genre="femmes")],
        fermes=[make_ferme(total_ouvriers=1)],
    )
