"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ERP SESSIONS - Réconciliation sessions existantes / lignes importées        ║
║                                                                              ║
║  APPARIEMENT PAR POSITION TRIÉE (pas par id, pas par contenu):               ║
║  - sessions existantes triées (start, created_at, id)                        ║
║  - lignes triées par num_sesion (tri naturel: "2" avant "10")                ║
║  - paire i ↔ i → UPDATE                                                      ║
║  - sessions en surplus → DELETE                                              ║
║  - lignes en surplus → CREATE                                                ║
║                                                                              ║
║  Les trois ensembles sont calculés AVANT toute écriture.                     ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import re
from datetime import datetime, timezone
from typing import List, Sequence, Set, Tuple

from models import ImportRow, SessionRecord
from services.session_row_parser import strip_accents

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)
_CHUNK_RE = re.compile(r"(\d+)")


def natural_key(value: str) -> Tuple:
    """Clé de tri numérique-aware et insensible casse/accents"""
    text = strip_accents(value or "").casefold().strip()
    key = []
    for chunk in _CHUNK_RE.split(text):
        if not chunk:
            continue
        if chunk.isdigit():
            key.append((0, int(chunk), ""))
        else:
            key.append((1, 0, chunk))
    return tuple(key)


def session_sort_key(session: SessionRecord) -> Tuple:
    """(start, created_at, id), valeurs manquantes en dernier"""
    return (
        session.start is None,
        session.start or _FAR_FUTURE,
        session.created_at is None,
        session.created_at or _FAR_FUTURE,
        session.id,
    )


def sort_existing_sessions(sessions: Sequence[SessionRecord]) -> List[SessionRecord]:
    return sorted(sessions, key=session_sort_key)


def sort_import_rows(rows: Sequence[ImportRow]) -> List[ImportRow]:
    return sorted(rows, key=lambda r: (natural_key(r.session_number), r.start))


class ReconciliationPlan:
    """Résultat de la réconciliation d'un deal"""

    def __init__(
        self,
        updates: List[Tuple[SessionRecord, ImportRow]],
        deletions: List[SessionRecord],
        creations: List[ImportRow],
    ):
        self.updates = updates
        self.deletions = deletions
        self.creations = creations

    @property
    def deleted_ids(self) -> Set[str]:
        return {s.id for s in self.deletions}

    def to_dict(self):
        return {
            "updates": [s.id for s, _ in self.updates],
            "deletions": [s.id for s in self.deletions],
            "creations": [r.session_number for r in self.creations],
        }


def pair_by_sorted_position(
    existing: Sequence[SessionRecord],
    rows: Sequence[ImportRow],
) -> ReconciliationPlan:
    """
    Apparie index par index les sessions et les lignes DÉJÀ triées.
    La ligne 1 du nouveau fichier correspond à la session 1 du plan
    existant, quel que soit leur contenu.
    """
    paired = min(len(existing), len(rows))
    return ReconciliationPlan(
        updates=[(existing[i], rows[i]) for i in range(paired)],
        deletions=list(existing[paired:]),
        creations=list(rows[paired:]),
    )


def reconcile(existing: Sequence[SessionRecord], rows: Sequence[ImportRow]) -> ReconciliationPlan:
    return pair_by_sorted_position(sort_existing_sessions(existing), sort_import_rows(rows))
