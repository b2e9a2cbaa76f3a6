"""
Règles d'occupation: compatibilité genre/ferme, statut de sortie, champs dérivés.
"""

from services.occupancy_rules import (
    ACTIF,
    INACTIF,
    apply_exit_status,
    available_rooms,
    calculate_age,
    can_assign,
    find_room,
    gender_to_room_genre,
    normalize_worker_fields,
    room_has_space,
)
from tests.conftest import make_room, make_worker


class TestGenderMapping:

    def test_mapping(self):
        assert gender_to_room_genre("homme") == "hommes"
        assert gender_to_room_genre("femme") == "femmes"
        assert gender_to_room_genre("autre") is None
        assert gender_to_room_genre(None) is None

    def test_can_assign_same_farm_and_gender(self):
        assert can_assign(make_worker("A"), make_room("R1", "101", genre="hommes"))
        assert can_assign(make_worker("B", sexe="femme"), make_room("R2", "201", genre="femmes"))

    def test_gender_mismatch_rejected(self):
        assert not can_assign(make_worker("B", sexe="femme"), make_room("R1", "101", genre="hommes"))

    def test_other_farm_rejected(self):
        assert not can_assign(make_worker("A", ferme_id="F2"), make_room("R1", "101"))

    def test_full_room_still_assignable(self):
        room = make_room("R1", "101", occupants=["X", "Y"], capacite_totale=2)
        assert not room_has_space(room)
        assert can_assign(make_worker("A"), room)
        print("✅ Capacité indicative: chambre pleine acceptée")


class TestFindRoom:

    def test_numero_is_scoped_by_farm(self):
        rooms = [make_room("R1", "101", ferme_id="F1"), make_room("R2", "101", ferme_id="F2")]
        assert find_room(rooms, "F2", "101")["id"] == "R2"
        assert find_room(rooms, "F3", "101") is None

    def test_empty_numero(self):
        assert find_room([make_room("R1", "")], "F1", "") is None


class TestAvailableRooms:

    def test_filters_and_sorts_numerically(self):
        rooms = [
            make_room("R10", "10"),
            make_room("R2", "2", occupants=["X", "Y"]),
            make_room("RF", "3", genre="femmes"),
            make_room("RO", "1", ferme_id="F2"),
        ]
        result = available_rooms(rooms, "F1", "homme")

        assert [r["numero"] for r in result] == ["2", "10"]
        assert result[0]["is_full"] is True
        assert result[1]["is_full"] is False

    def test_missing_inputs(self):
        rooms = [make_room("R1", "101")]
        assert available_rooms(rooms, "", "homme") == []
        assert available_rooms(rooms, "F1", None) == []


class TestExitStatus:

    def test_exit_date_forces_inactive(self):
        assert apply_exit_status({"date_sortie": "2024-05-01", "statut": ACTIF})["statut"] == INACTIF

    def test_keeps_previous_status(self):
        assert apply_exit_status({}, previous_status=INACTIF)["statut"] == INACTIF
        assert apply_exit_status({})["statut"] == ACTIF

    def test_does_not_mutate_input(self):
        patch = {"date_sortie": "2024-05-01"}
        apply_exit_status(patch)
        assert "statut" not in patch


class TestNormalize:

    def test_age_from_year_of_birth(self):
        assert calculate_age(1990, year=2024) == 34
        result = normalize_worker_fields({"year_of_birth": 1990, "age": 5})
        assert result["age"] == calculate_age(1990)

    def test_motif_none_removed(self):
        assert "motif" not in normalize_worker_fields({"motif": "none"})
        assert "motif" not in normalize_worker_fields({"motif": ""})
        assert normalize_worker_fields({"motif": "fin_contrat"})["motif"] == "fin_contrat"

    def test_previous_entry_date_kept(self):
        previous = make_worker("A", date_entree="2023-03-01")
        result = normalize_worker_fields({"date_entree": ""}, previous=previous)
        assert result["date_entree"] == "2023-03-01"
