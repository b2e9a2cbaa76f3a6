"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Règles d'occupation des chambres                                            ║
║                                                                              ║
║  - Un ouvrier "homme" ne va que dans une chambre "hommes" (idem femmes)      ║
║  - Chambre et ouvrier doivent appartenir à la même ferme                     ║
║  - La capacité est INDICATIVE: jamais bloquante à l'écriture                 ║
║  - date_sortie renseignée IMPLIQUE statut = "inactif"                        ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import List, Optional

from config import current_year

ACTIF = "actif"
INACTIF = "inactif"

GENDER_TO_ROOM_GENRE = {
    "homme": "hommes",
    "femme": "femmes",
}


def gender_to_room_genre(sexe: str) -> Optional[str]:
    return GENDER_TO_ROOM_GENRE.get(sexe)


def gender_matches(worker: dict, room: dict) -> bool:
    genre = gender_to_room_genre(worker.get("sexe"))
    return genre is not None and room.get("genre") == genre


def can_assign(worker: dict, room: dict) -> bool:
    """
    Vrai si l'ouvrier peut être affecté à la chambre:
    même ferme et genre compatible. La capacité n'entre PAS en compte.
    """
    if room.get("ferme_id") != worker.get("ferme_id"):
        return False
    return gender_matches(worker, room)


def is_active(worker: dict) -> bool:
    return worker.get("statut") == ACTIF


def room_has_space(room: dict) -> bool:
    """Indicatif uniquement (l'UI désactive la sélection des chambres pleines)"""
    return room.get("occupants_actuels", 0) < room.get("capacite_totale", 0)


def find_room(rooms: List[dict], ferme_id: str, numero: str) -> Optional[dict]:
    """Chambre par (ferme, numéro). Le numéro est unique dans une ferme."""
    if not numero:
        return None
    for room in rooms:
        if room.get("numero") == numero and room.get("ferme_id") == ferme_id:
            return room
    return None


def _room_sort_key(room: dict):
    numero = str(room.get("numero", ""))
    if numero.isdigit():
        return (0, int(numero), numero)
    return (1, 0, numero)


def available_rooms(rooms: List[dict], ferme_id: str, sexe: str) -> List[dict]:
    """
    Chambres sélectionnables pour un ouvrier: ferme + genre, triées par numéro.
    Les chambres pleines restent listées avec is_full=True.
    """
    genre = gender_to_room_genre(sexe)
    if not ferme_id or genre is None:
        return []

    matching = [
        r for r in rooms
        if r.get("ferme_id") == ferme_id and r.get("genre") == genre
    ]
    return [
        {**room, "is_full": not room_has_space(room)}
        for room in sorted(matching, key=_room_sort_key)
    ]


def calculate_age(year_of_birth: int, year: int = None) -> int:
    return (year or current_year()) - int(year_of_birth)


def apply_exit_status(patch: dict, previous_status: str = None) -> dict:
    """
    Une date de sortie force le statut "inactif".
    Sinon: statut fourni, sinon statut précédent, sinon "actif".
    """
    result = dict(patch)
    if result.get("date_sortie"):
        result["statut"] = INACTIF
    else:
        result["statut"] = result.get("statut") or previous_status or ACTIF
    return result


def normalize_worker_fields(data: dict, previous: dict = None) -> dict:
    """
    Champs dérivés d'un ouvrier avant écriture: âge, statut, motif.
    """
    previous = previous or {}
    result = apply_exit_status(data, previous.get("statut"))

    if result.get("year_of_birth"):
        result["age"] = calculate_age(result["year_of_birth"])

    if previous and not result.get("date_entree"):
        result["date_entree"] = previous.get("date_entree", "")

    # "none" = pas de motif (valeur du sélecteur)
    if result.get("motif") in ("none", ""):
        result.pop("motif")

    return result
