"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ERP SESSIONS - Moteur d'attribution des salles                              ║
║                                                                              ║
║  Pour chaque session: ordre aléatoire (shuffle uniforme) des salles,         ║
║  première salle sans conflit retenue puis réservée dans l'index du batch     ║
║  → les sessions suivantes du MÊME batch la voient occupée.                   ║
║                                                                              ║
║  SOFT CONSTRAINT: aucune salle libre → room_id=None, jamais d'erreur         ║
║  SKIP: pipelines formation ouverte / sede In Company → pas de salle          ║
║  KILL SWITCH: ROOM_ALLOCATION_ENABLED                                        ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import random
from typing import Iterable, List, Optional

from config import ROOMLESS_PIPELINES, ROOM_ALLOCATION_ENABLED
from models import DealRecord, TimeWindow
from services.room_conflicts import RoomConflictIndex
from services.session_row_parser import strip_accents

logger = logging.getLogger("room_allocation")

ASSIGNED = "assigned"
NOT_NEEDED = "not_needed"
UNAVAILABLE = "unavailable"
DISABLED = "disabled"


class AllocationResult:
    """Résultat de l'attribution d'une salle"""

    def __init__(self, status: str, room_id: Optional[str] = None):
        self.status = status  # assigned | not_needed | unavailable | disabled
        self.room_id = room_id

    @property
    def assigned(self) -> bool:
        return self.status == ASSIGNED

    def to_dict(self):
        return {"status": self.status, "room_id": self.room_id}


def _normalize_label(value: Optional[str]) -> str:
    if not value:
        return ""
    return " ".join(strip_accents(str(value)).split()).lower()


def deal_needs_room(deal: DealRecord, roomless_pipelines: Optional[Iterable[str]] = None) -> bool:
    """False pour la formation ouverte et les formations In Company"""
    pipelines = ROOMLESS_PIPELINES if roomless_pipelines is None else roomless_pipelines
    pipeline = _normalize_label(deal.pipeline_label)
    if pipeline and pipeline in {_normalize_label(p) for p in pipelines}:
        return False
    if _normalize_label(deal.sede_label) == "in company":
        return False
    return True


class RoomAllocator:

    def __init__(
        self,
        room_ids: Iterable[str],
        index: RoomConflictIndex,
        rng: Optional[random.Random] = None,
        needs_room: bool = True,
        enabled: Optional[bool] = None,
    ):
        self.room_ids: List[str] = [r for r in room_ids if r]
        self.index = index
        self.rng = rng or random.Random()
        self.needs_room = needs_room
        self.enabled = ROOM_ALLOCATION_ENABLED if enabled is None else enabled

    def candidate_order(self) -> List[str]:
        order = list(self.room_ids)
        self.rng.shuffle(order)
        return order

    def allocate(
        self,
        window: TimeWindow,
        session_key: str,
        current_session_id: Optional[str] = None,
        current_room_id: Optional[str] = None,
    ) -> AllocationResult:
        """
        Attribue une salle à la fenêtre `window`.

        Args:
            window: fenêtre demandée
            session_key: clé de la session dans le batch (id existant ou nouvel id)
            current_session_id: session mise à jour (ses propres réservations ne bloquent pas)
            current_room_id: salle actuelle, retentée en premier si toujours libre
        """
        if not self.needs_room:
            return AllocationResult(NOT_NEEDED)

        if not self.enabled:
            return AllocationResult(DISABLED, current_room_id)

        order = self.candidate_order()
        if current_room_id and current_room_id in order:
            order.remove(current_room_id)
            order.insert(0, current_room_id)

        for room_id in order:
            if self.index.conflicts(room_id, window, current_session_id):
                continue
            self.index.reserve(session_key, room_id, window)
            return AllocationResult(ASSIGNED, room_id)

        logger.warning(
            f"[ROOMS] Aucune salle libre pour session={session_key} "
            f"{window.start.isoformat()} → {window.end.isoformat()} ({len(order)} candidates)"
        )
        return AllocationResult(UNAVAILABLE)
