"""
Agrégats des fermes (cache dénormalisé) et statistiques du tableau de bord.
"""

import logging
from typing import Iterable, List, Optional

from services.entity_store import FERMES
from services.occupancy_rules import is_active

logger = logging.getLogger("ferme_stats")


def count_active_workers(workers: List[dict], ferme_id: str, exclude_ids: Iterable[str] = ()) -> int:
    excluded = set(exclude_ids)
    return sum(
        1 for w in workers
        if w.get("ferme_id") == ferme_id and is_active(w) and w.get("id") not in excluded
    )


def count_rooms(rooms: List[dict], ferme_id: str) -> int:
    return sum(1 for r in rooms if r.get("ferme_id") == ferme_id)


async def recompute_ferme_totals(store, live, ferme_ids: Optional[Iterable[str]] = None) -> dict:
    """
    Recalcule total_ouvriers et total_chambres des fermes à partir du snapshot.
    Retourne: {updated: int, errors: [str]}
    """
    targets = list(ferme_ids) if ferme_ids is not None else [f["id"] for f in live.fermes]
    results = {"updated": 0, "errors": []}

    for ferme_id in targets:
        ferme = live.find_ferme(ferme_id)
        if not ferme:
            results["errors"].append(f"Ferme {ferme_id} non trouvée")
            continue

        totals = {
            "total_ouvriers": count_active_workers(live.workers, ferme_id),
            "total_chambres": count_rooms(live.rooms, ferme_id),
        }
        try:
            await store.update(FERMES, ferme_id, totals)
            results["updated"] += 1
        except Exception as e:
            logger.error(f"[FERME_STATS] Échec mise à jour {ferme.get('nom')}: {e}")
            results["errors"].append(f"{ferme.get('nom', ferme_id)}: {e}")

    return results


def dashboard_stats(workers: List[dict], rooms: List[dict], ferme_id: str = None) -> dict:
    if ferme_id:
        workers = [w for w in workers if w.get("ferme_id") == ferme_id]
        rooms = [r for r in rooms if r.get("ferme_id") == ferme_id]

    active = [w for w in workers if is_active(w)]
    capacity = sum(r.get("capacite_totale", 0) for r in rooms)
    occupied = sum(r.get("occupants_actuels", 0) for r in rooms)

    return {
        "total_ouvriers": len(active),
        "total_chambres": len(rooms),
        "chambres_occupees": sum(1 for r in rooms if r.get("occupants_actuels", 0) > 0),
        "places_restantes": max(0, capacity - occupied),
        "ouvriers_hommes": sum(1 for w in active if w.get("sexe") == "homme"),
        "ouvriers_femmes": sum(1 for w in active if w.get("sexe") == "femme"),
    }
