"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Réconciliation de l'occupation des chambres                                 ║
║                                                                              ║
║  La relation ouvrier <-> chambre est stockée des deux côtés:                 ║
║  worker.chambre ET room.liste_occupants. Ce module remet les listes          ║
║  d'occupants en accord avec les ouvriers réels.                              ║
║                                                                              ║
║  INVARIANTS RESTAURÉS:                                                       ║
║  - tout id de liste_occupants = ouvrier actif, genre compatible              ║
║  - occupants_actuels == len(liste_occupants)                                 ║
║  - deux appels successifs: le second ne produit AUCUN patch                  ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Dict, List, Tuple

from services.entity_store import ROOMS
from services.occupancy_rules import can_assign, find_room, gender_matches, is_active

logger = logging.getLogger("occupancy_reconciler")


def compute_room_patches(workers: List[dict], rooms: List[dict]) -> List[Tuple[dict, dict]]:
    """
    Patches nécessaires pour retirer les occupants invalides (ouvrier absent,
    inactif ou de genre incompatible). Fonction pure.
    """
    workers_by_id = {w.get("id"): w for w in workers}
    patches = []

    for room in rooms:
        occupants = list(room.get("liste_occupants") or [])
        valid = []
        for occupant_id in occupants:
            worker = workers_by_id.get(occupant_id)
            if worker and is_active(worker) and gender_matches(worker, room):
                valid.append(occupant_id)

        if len(valid) != len(occupants) or room.get("occupants_actuels") != len(valid):
            patches.append((room, {
                "liste_occupants": valid,
                "occupants_actuels": len(valid),
            }))

    return patches


def compute_attach_patches(workers: List[dict], rooms: List[dict]) -> List[Tuple[dict, dict]]:
    """
    Rattache aux chambres les ouvriers actifs dont la chambre est renseignée
    mais qui ne figurent dans aucune liste (cas de l'import en masse).
    Fonction pure.
    """
    listed = set()
    for room in rooms:
        listed.update(room.get("liste_occupants") or [])

    additions: Dict[str, List[str]] = {}
    rooms_by_id = {}
    for worker in workers:
        if not is_active(worker) or not worker.get("chambre") or worker.get("id") in listed:
            continue

        room = find_room(rooms, worker.get("ferme_id"), worker.get("chambre"))
        if not room or not can_assign(worker, room):
            continue

        rooms_by_id[room["id"]] = room
        additions.setdefault(room["id"], []).append(worker["id"])

    patches = []
    for room_id, new_ids in additions.items():
        room = rooms_by_id[room_id]
        occupants = list(room.get("liste_occupants") or []) + new_ids
        patches.append((room, {
            "liste_occupants": occupants,
            "occupants_actuels": len(occupants),
        }))

    return patches


async def apply_room_patches(store, patches: List[Tuple[dict, dict]]) -> int:
    """Écrit les patches chambre par chambre. Un échec n'arrête pas les autres."""
    patched = 0
    for room, patch in patches:
        try:
            await store.update(ROOMS, room["id"], patch)
            patched += 1
            logger.info(
                f"[RECONCILE] Chambre {room.get('numero')}: "
                f"{len(room.get('liste_occupants') or [])} -> {patch['occupants_actuels']} occupants"
            )
        except Exception as e:
            logger.error(f"[RECONCILE] Échec sur la chambre {room.get('numero')}: {e}")
    return patched


async def reconcile(store, workers: List[dict], rooms: List[dict]) -> dict:
    """
    Retire les occupants invalides de toutes les chambres.
    Retourne: {rooms_patched: int}
    """
    patches = compute_room_patches(workers, rooms)
    if not patches:
        return {"rooms_patched": 0}

    patched = await apply_room_patches(store, patches)
    logger.info(f"[RECONCILE] {patched}/{len(patches)} chambres corrigées")
    return {"rooms_patched": patched}
