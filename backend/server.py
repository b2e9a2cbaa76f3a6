"""
Fermes & Dortoirs - API Backend

Démarre avec:
    uvicorn server:app --host 0.0.0.0 --port 8001 --reload
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from config import CORS_ORIGINS, client
from scheduler_service import TaskScheduler
from services.entity_store import EntityStore
from services.live_collections import LiveCollections
from services.repair_sweep import RepairSweep
from services.worker_mutations import WorkerMutationService

# Configuration logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("fermes")

# Créer l'app
app = FastAPI(
    title="Fermes & Dortoirs",
    description="Gestion des ouvriers, des chambres et des fermes",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== IMPORT DES ROUTES ====================

from routes import auth, workers, rooms, fermes, activity

# Routes avec préfixe /api
app.include_router(auth.router, prefix="/api")
app.include_router(workers.router, prefix="/api")
app.include_router(rooms.router, prefix="/api")
app.include_router(fermes.router, prefix="/api")
app.include_router(activity.router, prefix="/api")


def init_services(app: FastAPI, store, auto_repair: bool = True) -> None:
    """Objets partagés: snapshot live, orchestrateur, balayage"""
    live = LiveCollections(store)
    sweep = RepairSweep(store, live)
    if auto_repair:
        sweep.attach()

    app.state.store = store
    app.state.live = live
    app.state.sweep = sweep
    app.state.mutations = WorkerMutationService(store, live)


# ==================== ROUTE RACINE ====================

@app.get("/")
async def root():
    return {
        "name": "Fermes & Dortoirs API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


# ==================== STARTUP / SHUTDOWN ====================

@app.on_event("startup")
async def startup():
    logger.info("🚀 Fermes & Dortoirs démarré")

    store = EntityStore()
    await store.ensure_indexes()
    logger.info("✅ Index MongoDB créés")

    init_services(app, store)
    await app.state.live.start()

    app.state.scheduler = TaskScheduler(store, app.state.live, app.state.sweep)
    app.state.scheduler.start()


@app.on_event("shutdown")
async def shutdown():
    app.state.scheduler.stop()
    await app.state.sweep.stop()
    await app.state.live.stop()
    client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
