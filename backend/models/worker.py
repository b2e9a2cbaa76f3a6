"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Modèle Ouvrier                                                              ║
║                                                                              ║
║  RÈGLES:                                                                     ║
║  - date_sortie renseignée => statut "inactif" (forcé à l'écriture)           ║
║  - age recalculé depuis year_of_birth quand il est connu                     ║
║  - chambre = numéro de chambre DANS la ferme de l'ouvrier                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class Sexe(str, Enum):
    HOMME = "homme"
    FEMME = "femme"


class WorkerStatus(str, Enum):
    ACTIF = "actif"
    INACTIF = "inactif"


# Motifs de sortie (valeurs du sélecteur, "none" = aucun motif)
MOTIFS_SORTIE = [
    "none", "fin_contrat", "demission", "licenciement", "mutation", "retraite",
    "opportunite_salariale", "absences_frequentes", "comportement", "salaire",
    "depart_volontaire", "horaires_nocturnes", "adaptation_difficile", "etudes",
    "heures_insuffisantes", "distance", "indiscipline", "maladie",
    "respect_voisins", "nature_travail", "sante", "securite", "rendement",
    "problemes_personnels", "caporal", "refus_poste", "rejet_selection",
    "repos_temporaire", "secteur_insatisfaisant", "pas_reponse",
    "conditions_secteur", "raisons_personnelles", "autre",
]


def today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _check_date(v):
    if v:
        try:
            date.fromisoformat(v)
        except ValueError:
            raise ValueError(f"Date invalide: {v} (format attendu AAAA-MM-JJ)")
    return v


def _check_year_of_birth(v):
    if v is not None and not (1900 <= v <= datetime.now(timezone.utc).year):
        raise ValueError(f"Année de naissance invalide: {v}")
    return v


def _check_motif(v):
    if v and v not in MOTIFS_SORTIE:
        raise ValueError(f"Motif invalide: {v}")
    return v


class WorkerCreate(BaseModel):
    """Création d'un ouvrier"""
    nom: str = Field(min_length=1)
    cin: str = ""
    telephone: str = ""
    sexe: Sexe
    age: int = 0
    year_of_birth: Optional[int] = None
    ferme_id: str = Field(min_length=1)
    chambre: str = ""  # Numéro de chambre, vide = non logé
    secteur: str = ""
    statut: WorkerStatus = WorkerStatus.ACTIF
    date_entree: str = Field(default_factory=today_iso)
    date_sortie: str = ""
    motif: str = "none"

    @field_validator('date_entree', 'date_sortie')
    @classmethod
    def validate_dates(cls, v):
        return _check_date(v)

    @field_validator('year_of_birth')
    @classmethod
    def validate_year_of_birth(cls, v):
        return _check_year_of_birth(v)

    @field_validator('motif')
    @classmethod
    def validate_motif(cls, v):
        return _check_motif(v)


class WorkerUpdate(BaseModel):
    """Mise à jour d'un ouvrier (champs absents = inchangés)"""
    nom: Optional[str] = None
    cin: Optional[str] = None
    telephone: Optional[str] = None
    sexe: Optional[Sexe] = None
    age: Optional[int] = None
    year_of_birth: Optional[int] = None
    ferme_id: Optional[str] = None
    chambre: Optional[str] = None
    secteur: Optional[str] = None
    statut: Optional[WorkerStatus] = None
    date_entree: Optional[str] = None
    date_sortie: Optional[str] = None  # "" = retirer la date de sortie
    motif: Optional[str] = None

    @field_validator('date_entree', 'date_sortie')
    @classmethod
    def validate_dates(cls, v):
        return _check_date(v)

    @field_validator('year_of_birth')
    @classmethod
    def validate_year_of_birth(cls, v):
        return _check_year_of_birth(v)

    @field_validator('motif')
    @classmethod
    def validate_motif(cls, v):
        return _check_motif(v)


class BulkDeleteRequest(BaseModel):
    worker_ids: List[str] = Field(min_length=1)


class BulkImportRequest(BaseModel):
    """Enregistrements bruts: chacun est validé (WorkerCreate) à l'import, les rejets sont comptés"""
    workers: List[dict] = Field(min_length=1)


class MutationResult(BaseModel):
    """Résultat d'une opération sur les ouvriers, affichable tel quel"""
    success: bool
    message: str = ""
    worker_id: Optional[str] = None
    warnings: List[str] = []
    errors: List[str] = []
    success_count: int = 0
    error_count: int = 0
