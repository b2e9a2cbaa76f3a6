"""
Configuration et utilitaires partagés
"""

import os
import hashlib
import secrets
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'fermes_dortoirs')
MONGO_TIMEOUT_MS = int(os.environ.get('MONGO_TIMEOUT_MS', '10000'))

client = AsyncIOMotorClient(MONGO_URL, serverSelectionTimeoutMS=MONGO_TIMEOUT_MS)
db = client[DB_NAME]

# Réparation des chambres
REPAIR_SWEEP_DELAY_SECONDS = float(os.environ.get('REPAIR_SWEEP_DELAY_SECONDS', '2'))
REPAIR_INTERVAL_MINUTES = int(os.environ.get('REPAIR_INTERVAL_MINUTES', '15'))
SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE', 'Africa/Casablanca')

# HTTP
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
SESSION_DAYS = int(os.environ.get('SESSION_DAYS', '7'))


# ==================== HELPERS ====================

def hash_password(password: str) -> str:
    """Hash un mot de passe avec SHA256"""
    return hashlib.sha256(password.encode()).hexdigest()

def generate_token() -> str:
    """Génère un token de session sécurisé"""
    return secrets.token_urlsafe(32)

def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return datetime.now(timezone.utc).isoformat()

def current_year() -> int:
    return datetime.now(timezone.utc).year
