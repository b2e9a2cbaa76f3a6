"""
Dépendances FastAPI: objets partagés de l'application (créés au démarrage).
"""

from fastapi import Request


def get_store(request: Request):
    return request.app.state.store


def get_live(request: Request):
    return request.app.state.live


def get_mutations(request: Request):
    return request.app.state.mutations


def get_sweep(request: Request):
    return request.app.state.sweep
