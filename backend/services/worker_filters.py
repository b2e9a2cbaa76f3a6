"""
Filtres de la liste des ouvriers et moyennes d'âge.
"""

from datetime import date
from typing import List, Optional
from pydantic import BaseModel

from services.occupancy_rules import is_active


class WorkerFilters(BaseModel):
    search: str = ""
    ferme_id: str = "all"
    sexe: str = "all"
    statut: str = "all"
    entry_month: str = "all"  # "1".."12"
    entry_year: str = "all"
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    date_entree_from: str = ""
    date_entree_to: str = ""
    date_sortie_from: str = ""
    date_sortie_to: str = ""
    chambre: str = ""
    motif: str = "all"  # "none" = sans motif


def _parse(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value[:10]) if value else None
    except ValueError:
        return None


def _in_range(value: str, start: str, end: str) -> bool:
    current = _parse(value)
    if current is None:
        return True
    lower, upper = _parse(start), _parse(end)
    if lower and current < lower:
        return False
    if upper and current > upper:
        return False
    return True


def matches(worker: dict, f: WorkerFilters) -> bool:
    if f.search:
        needle = f.search.lower()
        if needle not in (worker.get("nom") or "").lower() and needle not in (worker.get("cin") or "").lower():
            return False

    if f.ferme_id != "all" and worker.get("ferme_id") != f.ferme_id:
        return False
    if f.sexe != "all" and worker.get("sexe") != f.sexe:
        return False
    if f.statut != "all" and worker.get("statut") != f.statut:
        return False

    entry = _parse(worker.get("date_entree") or "")
    if entry:
        if f.entry_month != "all" and str(entry.month) != f.entry_month:
            return False
        if f.entry_year != "all" and str(entry.year) != f.entry_year:
            return False

    age = worker.get("age") or 0
    if f.age_min is not None and age < f.age_min:
        return False
    if f.age_max is not None and age > f.age_max:
        return False

    if not _in_range(worker.get("date_entree") or "", f.date_entree_from, f.date_entree_to):
        return False
    if not _in_range(worker.get("date_sortie") or "", f.date_sortie_from, f.date_sortie_to):
        return False

    if f.chambre and f.chambre.lower() not in (worker.get("chambre") or "").lower():
        return False
    if f.motif != "all" and f.motif != (worker.get("motif") or "none"):
        return False

    return True


def filter_workers(workers: List[dict], filters: WorkerFilters) -> List[dict]:
    return [w for w in workers if matches(w, filters)]


def average_ages(workers: List[dict]) -> dict:
    """Âge moyen arrondi des hommes / femmes actifs (0 si aucun)"""
    active = [w for w in workers if is_active(w)]
    result = {}
    for key, sexe in (("average_age_men", "homme"), ("average_age_women", "femme")):
        ages = [w.get("age") or 0 for w in active if w.get("sexe") == sexe]
        result[key] = int(sum(ages) / len(ages) + 0.5) if ages else 0
    return result


def available_entry_years(workers: List[dict]) -> List[int]:
    years = {d.year for d in (_parse(w.get("date_entree") or "") for w in workers) if d}
    return sorted(years, reverse=True)
