"""
Orchestrateur des mutations: création, mise à jour, suppression, opérations en masse.
Chaque opération = un lot atomique ouvrier + chambres (+ ferme).
"""

import pytest

from services.entity_store import FERMES, ROOMS, WORKERS
from services.errors import BatchCommitError, NotFoundError
from tests.conftest import build, make_ferme, make_room, make_worker, run


def _room(store, room_id):
    return store.doc(ROOMS, room_id)


class TestCreateWorker:

    def test_create_in_room_101(self, dorm):
        store, live, mutations = dorm

        result = run(mutations.create_worker(make_worker("B", chambre="101")))

        assert result.success is True
        assert result.worker_id == "B"
        assert store.doc(WORKERS, "B")["statut"] == "actif"
        room = _room(store, "R101")
        assert room["liste_occupants"] == ["A", "B"]
        assert room["occupants_actuels"] == 2
        assert len(store.commits) == 1
        print("✅ Ouvrier B créé et ajouté à la chambre 101 dans le même lot")

    def test_generated_id_when_missing(self, dorm):
        store, live, mutations = dorm
        data = make_worker("X", chambre="101")
        data.pop("id")

        result = run(mutations.create_worker(data))

        assert result.worker_id
        assert result.worker_id in _room(store, "R101")["liste_occupants"]
        assert live.find_worker(result.worker_id) is not None

    def test_gender_mismatch_leaves_room_untouched(self, dorm):
        store, live, mutations = dorm

        result = run(mutations.create_worker(make_worker("M", chambre="201")))

        assert result.success is True
        assert store.doc(WORKERS, "M") is not None
        assert _room(store, "R201")["liste_occupants"] == []
        assert _room(store, "R201")["occupants_actuels"] == 0

    def test_inactive_worker_not_housed(self, dorm):
        store, live, mutations = dorm

        run(mutations.create_worker(make_worker("B", chambre="101", date_sortie="2024-02-01")))

        assert store.doc(WORKERS, "B")["statut"] == "inactif"
        assert _room(store, "R101")["liste_occupants"] == ["A"]

    def test_full_room_accepts_with_warning(self):
        store, live, mutations = build(
            workers=[make_worker("A", chambre="101"), make_worker("C", chambre="101")],
            rooms=[make_room("R101", "101", occupants=["A", "C"], capacite_totale=2)],
        )

        result = run(mutations.create_worker(make_worker("B", chambre="101")))

        assert _room(store, "R101")["liste_occupants"] == ["A", "C", "B"]
        assert _room(store, "R101")["occupants_actuels"] == 3
        assert any("pleine" in w for w in result.warnings)

    def test_unknown_room_creates_worker_only(self, dorm):
        store, live, mutations = dorm

        run(mutations.create_worker(make_worker("B", chambre="999")))

        assert store.doc(WORKERS, "B")["chambre"] == "999"
        assert _room(store, "R101")["liste_occupants"] == ["A"]

    def test_audit_entry_written(self, dorm):
        store, live, mutations = dorm

        run(mutations.create_worker(make_worker("B"), actor={"id": "u1", "email": "a@test.local"}))

        logs = store.docs("activity_logs")
        assert len(logs) == 1
        assert logs[0]["action"] == "create"
        assert logs[0]["entity_id"] == "B"


class TestUpdateWorker:

    def test_exit_date_forces_inactive_and_frees_room(self, dorm):
        store, live, mutations = dorm

        result = run(mutations.update_worker("A", {"date_sortie": "2024-01-10"}))

        assert result.success is True
        worker = store.doc(WORKERS, "A")
        assert worker["statut"] == "inactif"
        assert worker["date_sortie"] == "2024-01-10"
        assert _room(store, "R101")["liste_occupants"] == []
        assert _room(store, "R101")["occupants_actuels"] == 0
        print("✅ Date de sortie => inactif, chambre libérée")

    def test_exit_date_overrides_explicit_active(self, dorm):
        store, live, mutations = dorm

        run(mutations.update_worker("A", {"date_sortie": "2024-01-10", "statut": "actif"}))

        assert store.doc(WORKERS, "A")["statut"] == "inactif"

    def test_move_between_rooms(self):
        store, live, mutations = build(
            workers=[make_worker("A", chambre="101")],
            rooms=[make_room("R101", "101", occupants=["A"]), make_room("R102", "102")],
        )

        run(mutations.update_worker("A", {"chambre": "102"}))

        assert _room(store, "R101")["liste_occupants"] == []
        assert _room(store, "R102")["liste_occupants"] == ["A"]
        assert _room(store, "R102")["occupants_actuels"] == 1
        assert len(store.commits) == 1

    def test_gender_mismatch_clears_room_with_warning(self, dorm):
        store, live, mutations = dorm

        result = run(mutations.update_worker("A", {"chambre": "201", "secteur": "S1"}))

        assert result.success is True
        assert len(result.warnings) == 1
        worker = store.doc(WORKERS, "A")
        assert worker["chambre"] == ""
        assert worker["secteur"] == ""
        assert _room(store, "R201")["liste_occupants"] == []
        assert _room(store, "R101")["liste_occupants"] == []

    def test_reactivation_rehouses_worker(self):
        store, live, mutations = build(
            workers=[make_worker("A", chambre="101", statut="inactif")],
            rooms=[make_room("R101", "101")],
        )

        run(mutations.update_worker("A", {"statut": "actif"}))

        assert _room(store, "R101")["liste_occupants"] == ["A"]

    def test_plain_field_change_touches_no_room(self, dorm):
        store, live, mutations = dorm

        run(mutations.update_worker("A", {"telephone": "0611111111"}))

        assert store.doc(WORKERS, "A")["telephone"] == "0611111111"
        assert [op["collection"] for op in store.commits[0]] == [WORKERS]

    def test_unknown_worker(self, dorm):
        store, live, mutations = dorm

        with pytest.raises(NotFoundError):
            run(mutations.update_worker("NOPE", {"nom": "x"}))


class TestDeleteWorker:

    def test_delete_frees_room_and_updates_farm(self, dorm):
        store, live, mutations = dorm

        result = run(mutations.delete_worker("A"))

        assert result.success is True
        assert store.doc(WORKERS, "A") is None
        assert _room(store, "R101")["liste_occupants"] == []
        assert _room(store, "R101")["occupants_actuels"] == 0
        assert store.doc(FERMES, "F1")["total_ouvriers"] == 0
        assert len(store.commits) == 1

    def test_cin_fallback(self):
        store, live, mutations = build(
            workers=[make_worker("A", chambre="101", cin="AB123"), make_worker("C", chambre="101")],
            rooms=[make_room("R101", "101", occupants=["AB123", "C"])],
        )

        run(mutations.delete_worker("A"))

        assert _room(store, "R101")["liste_occupants"] == ["C"]
        assert _room(store, "R101")["occupants_actuels"] == 1

    def test_count_floored_to_list_length(self):
        store, live, mutations = build(
            workers=[make_worker("A", chambre="101")],
            rooms=[make_room("R101", "101", occupants=["A"], occupants_actuels=5)],
        )

        run(mutations.delete_worker("A"))

        assert _room(store, "R101")["occupants_actuels"] == 0

    def test_not_found(self, dorm):
        store, live, mutations = dorm

        with pytest.raises(NotFoundError):
            run(mutations.delete_worker("NOPE"))
        assert store.commits == []

    def test_batch_failure_leaves_data_intact(self, dorm):
        store, live, mutations = dorm
        store.fail_commit = "permission-denied"

        with pytest.raises(BatchCommitError):
            run(mutations.delete_worker("A"))

        assert store.doc(WORKERS, "A") is not None
        assert _room(store, "R101")["liste_occupants"] == ["A"]


class TestBulkDelete:

    def _two_in_101(self):
        return build(
            workers=[
                make_worker("A", chambre="101"),
                make_worker("B", chambre="101"),
                make_worker("C"),
            ],
            rooms=[make_room("R101", "101", occupants=["A", "B"])],
            fermes=[make_ferme(total_ouvriers=3)],
        )

    def test_bulk_delete_empties_room(self):
        store, live, mutations = self._two_in_101()

        result = run(mutations.bulk_delete_workers(["A", "B"]))

        assert result.success is True
        assert result.success_count == 2
        assert result.error_count == 0
        assert _room(store, "R101")["liste_occupants"] == []
        assert _room(store, "R101")["occupants_actuels"] == 0
        assert store.doc(FERMES, "F1")["total_ouvriers"] == 1
        assert len(store.commits) == 1
        print("✅ Suppression en masse: chambre vide, agrégat ferme recalculé")

    def test_partial_failure_reported(self):
        store, live, mutations = self._two_in_101()

        result = run(mutations.bulk_delete_workers(["A", "GHOST"]))

        assert result.success is True
        assert result.success_count == 1
        assert result.error_count == 1
        assert "GHOST" in result.errors[0]
        assert store.doc(WORKERS, "A") is None
        assert _room(store, "R101")["liste_occupants"] == ["B"]

    def test_all_missing(self):
        store, live, mutations = self._two_in_101()

        result = run(mutations.bulk_delete_workers(["X", "Y"]))

        assert result.success is False
        assert result.error_count == 2
        assert store.commits == []

    def test_farm_stats_failure_collected(self):
        store, live, mutations = self._two_in_101()
        store.fail_update_ids.add("F1")

        result = run(mutations.bulk_delete_workers(["A"]))

        assert result.success_count == 1
        assert result.error_count == 1
        assert store.doc(WORKERS, "A") is None

    def test_commit_failure_propagates(self):
        store, live, mutations = self._two_in_101()
        store.fail_commit = "quota"

        with pytest.raises(BatchCommitError):
            run(mutations.bulk_delete_workers(["A", "B"]))
        assert store.doc(WORKERS, "A") is not None


class TestBulkImport:

    def test_import_defers_room_updates(self, dorm):
        store, live, mutations = dorm
        records = [make_worker(f"N{i}", chambre="101") for i in range(3)]
        for record in records:
            record.pop("id")

        result = run(mutations.bulk_import_workers(records))

        assert result.success_count == 3
        assert len(store.docs(WORKERS)) == 4
        assert _room(store, "R101")["liste_occupants"] == ["A"]
        assert all(op["collection"] == WORKERS for op in store.commits[0])

    def test_invalid_records_collected(self, dorm):
        store, live, mutations = dorm

        result = run(mutations.bulk_import_workers([
            {"nom": "Valide", "sexe": "homme", "ferme_id": "F1"},
            {"nom": "", "sexe": "homme", "ferme_id": "F1"},
            {"nom": "Sans ferme", "sexe": "femme"},
        ]))

        assert result.success_count == 1
        assert result.error_count == 2
        assert "1 réussis, 2 échoués" in result.message
