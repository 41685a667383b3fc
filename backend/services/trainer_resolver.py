"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ERP SESSIONS - Résolution des formateurs (nom libre → identité)             ║
║                                                                              ║
║  Ordre de recherche:                                                         ║
║  1. Nom vide → aucun formateur                                               ║
║  2. Nom complet exact (insensible à la casse)                                ║
║  3. ≥2 mots: prénom contient mot 0 ET nom contient le reste                  ║
║  4. Sous-chaîne du texte complet dans prénom OU nom                          ║
║                                                                              ║
║  RÈGLE: le PREMIER formateur de l'annuaire qui correspond gagne              ║
║  (l'ordre de l'annuaire départage les ambiguïtés)                            ║
║  BEST-EFFORT: ne lève jamais d'erreur                                        ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import re
from typing import Dict, Iterable, List, Optional

from config import db
from models import TrainerIdentity

logger = logging.getLogger("trainer_resolver")


def normalize_name(value: Optional[str]) -> str:
    if not value:
        return ""
    return re.sub(r"\s+", " ", value).strip().casefold()


class TrainerDirectory:
    """Annuaire des formateurs, parcouru dans l'ordre de chargement"""

    def __init__(self, trainers: Iterable[TrainerIdentity]):
        self.trainers: List[TrainerIdentity] = list(trainers)

    def __len__(self) -> int:
        return len(self.trainers)

    def find_by_exact_name(self, name: str) -> Optional[TrainerIdentity]:
        target = normalize_name(name)
        if not target:
            return None
        for trainer in self.trainers:
            if normalize_name(trainer.full_name) == target:
                return trainer
        return None

    def find_by_name_parts(self, first: str, last: str) -> Optional[TrainerIdentity]:
        first_n = normalize_name(first)
        last_n = normalize_name(last)
        if not first_n or not last_n:
            return None
        for trainer in self.trainers:
            if first_n in normalize_name(trainer.first_name) and last_n in normalize_name(trainer.last_name):
                return trainer
        return None

    def find_by_substring(self, text: str) -> Optional[TrainerIdentity]:
        needle = normalize_name(text)
        if not needle:
            return None
        for trainer in self.trainers:
            if needle in normalize_name(trainer.first_name) or needle in normalize_name(trainer.last_name):
                return trainer
        return None


def resolve_trainer(directory: TrainerDirectory, name: Optional[str]) -> Optional[TrainerIdentity]:
    """Nom libre → TrainerIdentity, None si vide ou introuvable"""
    cleaned = re.sub(r"\s+", " ", name or "").strip()
    if not cleaned:
        return None

    found = directory.find_by_exact_name(cleaned)
    if found:
        return found

    tokens = cleaned.split(" ")
    if len(tokens) >= 2:
        found = directory.find_by_name_parts(tokens[0], " ".join(tokens[1:]))
        if found:
            return found

    return directory.find_by_substring(cleaned)


class TrainerResolver:
    """
    Résolution mémoïsée pour un batch: un même nom répété
    sur plusieurs lignes n'est résolu qu'une fois.
    """

    def __init__(self, directory: TrainerDirectory):
        self.directory = directory
        self._cache: Dict[str, Optional[TrainerIdentity]] = {}
        self.unresolved: List[str] = []

    def resolve(self, name: Optional[str]) -> Optional[TrainerIdentity]:
        key = normalize_name(name)
        if not key:
            return None
        if key not in self._cache:
            found = resolve_trainer(self.directory, name)
            self._cache[key] = found
            if found is None:
                self.unresolved.append(name.strip())
                logger.warning(f"[TRAINER] Aucun formateur pour '{name.strip()}'")
        return self._cache[key]


async def load_trainer_directory() -> TrainerDirectory:
    """Charge les formateurs actifs, triés (nom, prénom, id)"""
    docs = await db.trainers.find(
        {"active": {"$ne": False}},
        {"_id": 0, "id": 1, "first_name": 1, "last_name": 1}
    ).sort([("last_name", 1), ("first_name", 1), ("id", 1)]).to_list(5000)

    return TrainerDirectory(
        TrainerIdentity(
            id=d["id"],
            first_name=d.get("first_name") or "",
            last_name=d.get("last_name") or "",
        )
        for d in docs
        if d.get("id")
    )
