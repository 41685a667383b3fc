"""
Configuration et utilitaires partagés
"""

import os
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'test_database')  # Default to test_database

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]


# ==================== IMPORT DE SESSIONS ====================

# Fuseau des dates saisies sans offset dans les tableurs
IMPORT_TIMEZONE = os.environ.get('IMPORT_TIMEZONE', 'Europe/Madrid')

# Pipelines dont les sessions n'occupent jamais de salle (formation ouverte)
ROOMLESS_PIPELINES = [
    p.strip()
    for p in os.environ.get('ROOMLESS_PIPELINES', 'Formación Abierta').split(',')
    if p.strip()
]

# Kill switch de l'attribution automatique des salles
ROOM_ALLOCATION_ENABLED = os.environ.get('ROOM_ALLOCATION_ENABLED', 'true').lower() not in ('0', 'false', 'no', 'off')

# Unité mobile liée à chaque session importée (vide = aucun lien)
DEFAULT_MOBILE_UNIT_ID = os.environ.get('DEFAULT_MOBILE_UNIT_ID', '').strip() or None


# ==================== HELPERS ====================

def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value):
    """ISO string (ou datetime) -> datetime aware UTC, None si vide/invalide"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
