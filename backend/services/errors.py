"""
Erreurs du protocole d'occupation des chambres.

Aucune de ces erreurs n'est fatale pour le processus: chacune est limitée
à une action utilisateur et se rattrape par un nouvel essai ou par le
prochain passage du balayage de réparation.
"""

from typing import List


class OccupancyError(Exception):
    """Base des erreurs d'occupation"""
    pass


class OccupancyValidationError(OccupancyError):
    """Genre ou capacité incompatible. Non fatale: l'affectation est ignorée."""

    def __init__(self, message: str, worker_id: str = None, room_id: str = None):
        super().__init__(message)
        self.worker_id = worker_id
        self.room_id = room_id


class NotFoundError(OccupancyError):
    """Document référencé introuvable (ouvrier, chambre, ferme)"""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} introuvable")
        self.collection = collection
        self.doc_id = doc_id


class BatchCommitError(OccupancyError):
    """Écriture atomique rejetée par le store: rien n'a été appliqué"""
    pass


class PartialBulkFailure(OccupancyError):
    """Une partie d'une opération en masse a échoué"""

    def __init__(self, success_count: int, errors: List[str]):
        super().__init__(
            f"{success_count} réussis, {len(errors)} échoués"
        )
        self.success_count = success_count
        self.errors = list(errors)
