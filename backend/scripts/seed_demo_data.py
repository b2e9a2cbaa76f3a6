"""
Seed de démonstration (dev/staging uniquement)
Crée 2 fermes, leurs chambres et des comptes de test.
Run: python scripts/seed_demo_data.py
Reset: python scripts/seed_demo_data.py --reset
"""

import asyncio
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import client, db, hash_password, now_iso
from models.auth import VALID_ROLES

TEST_PASSWORD = "Secteur2026!"

FERMES = [
    {"id": "ferme-nord", "nom": "Ferme Nord"},
    {"id": "ferme-sud", "nom": "Ferme Sud"},
]

# (numero, genre, capacite)
ROOMS = [
    ("101", "hommes", 4), ("102", "hommes", 4), ("103", "hommes", 6),
    ("201", "femmes", 4), ("202", "femmes", 4),
]

TEST_USERS = [
    {"email": "superadmin@test.local", "nom": "Super Admin Test", "role": "superadmin", "ferme_id": None},
    {"email": "admin_nord@test.local", "nom": "Admin Nord", "role": "admin", "ferme_id": "ferme-nord"},
    {"email": "user_nord@test.local", "nom": "Utilisateur Nord", "role": "user", "ferme_id": "ferme-nord"},
    {"email": "admin_sud@test.local", "nom": "Admin Sud", "role": "admin", "ferme_id": "ferme-sud"},
]


def check_roles(users):
    unknown = sorted({u["role"] for u in users} - set(VALID_ROLES))
    if unknown:
        raise ValueError(f"Rôles inconnus: {', '.join(unknown)}")


async def reset(db):
    """Supprime les données de démonstration"""
    ferme_ids = [f["id"] for f in FERMES]
    users = await db.users.delete_many({"email": {"$regex": "@test\\.local$"}})
    rooms = await db.rooms.delete_many({"ferme_id": {"$in": ferme_ids}})
    workers = await db.workers.delete_many({"ferme_id": {"$in": ferme_ids}})
    await db.fermes.delete_many({"id": {"$in": ferme_ids}})
    print(f"Supprimés: {users.deleted_count} users, {rooms.deleted_count} chambres, "
          f"{workers.deleted_count} ouvriers")


async def seed(db):
    check_roles(TEST_USERS)
    now = now_iso()
    for ferme in FERMES:
        admins = [u["email"] for u in TEST_USERS if u["ferme_id"] == ferme["id"]]
        await db.fermes.insert_one({
            **ferme,
            "total_ouvriers": 0,
            "total_chambres": len(ROOMS),
            "admins": admins,
            "created_at": now,
            "updated_at": now,
        })
        for numero, genre, capacite in ROOMS:
            await db.rooms.insert_one({
                "id": str(uuid.uuid4()),
                "numero": numero,
                "ferme_id": ferme["id"],
                "genre": genre,
                "capacite_totale": capacite,
                "occupants_actuels": 0,
                "liste_occupants": [],
                "created_at": now,
                "updated_at": now,
            })
        print(f"  Ferme: {ferme['nom']} ({len(ROOMS)} chambres)")

    for u in TEST_USERS:
        await db.users.insert_one({
            "id": str(uuid.uuid4()),
            "email": u["email"],
            "password": hash_password(TEST_PASSWORD),
            "nom": u["nom"],
            "telephone": "",
            "role": u["role"],
            "ferme_id": u["ferme_id"],
            "is_active": True,
            "created_at": now,
        })
        print(f"  User: {u['email']} ({u['role']})")


async def main():
    if "--reset" in sys.argv:
        await reset(db)
        print("Reset terminé. Relancer sans --reset pour re-seeder.")
    else:
        await reset(db)
        await seed(db)
        print(f"\n{len(TEST_USERS)} comptes créés. Mot de passe: {TEST_PASSWORD}")

    client.close()


if __name__ == "__main__":
    asyncio.run(main())
