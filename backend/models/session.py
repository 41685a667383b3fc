"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ERP SESSIONS - Modèles Session / Salle / Formateur                          ║
║                                                                              ║
║  LIFECYCLE session (par deal):                                               ║
║  créée à l'import → mise à jour sur place → supprimée si surplus             ║
║                                                                              ║
║  RÈGLE: une salle n'est jamais réservée deux fois sur des fenêtres           ║
║  qui se chevauchent (intervalles fermés, bornes incluses)                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class SessionState(str, Enum):
    """Statuts possibles d'une session"""
    BORRADOR = "BORRADOR"        # Brouillon (état initial)
    PLANIFICADA = "PLANIFICADA"
    SUSPENDIDA = "SUSPENDIDA"
    CANCELADA = "CANCELADA"
    FINALIZADA = "FINALIZADA"


# Statuts qui bloquent une salle
ACTIVE_SESSION_STATES = [
    SessionState.BORRADOR.value,
    SessionState.PLANIFICADA.value,
    SessionState.SUSPENDIDA.value,
]


class TimeWindow(BaseModel):
    """Fenêtre horaire (start, end)"""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    def overlaps(self, other: "TimeWindow") -> bool:
        """Intervalles fermés: des bornes qui se touchent comptent comme chevauchement"""
        return self.start <= other.end and self.end >= other.start


class ImportRow(BaseModel):
    """Une ligne d'import validée (end > start garanti par le parser)"""
    session_number: str
    start: datetime
    end: datetime
    main_trainer_name: str = ""
    support_trainer_name: str = ""
    state: SessionState = SessionState.BORRADOR

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(start=self.start, end=self.end)


class SessionRecord(BaseModel):
    """Session persistée, rattachée à un seul deal"""
    model_config = ConfigDict(extra="ignore")  # Ignore MongoDB's _id field

    id: str
    deal_id: str
    deal_product_id: Optional[str] = None
    name: str = ""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    room_id: Optional[str] = None
    trainer_ids: List[str] = []
    address: str = ""
    state: SessionState = SessionState.BORRADOR
    created_at: Optional[datetime] = None

    @property
    def window(self) -> Optional[TimeWindow]:
        if self.start is None or self.end is None:
            return None
        return TimeWindow(start=self.start, end=self.end)


class Room(BaseModel):
    id: str
    name: str = ""
    booking_version: int = 0  # incrémenté à chaque import qui attribue la salle


class RoomBooking(BaseModel):
    """Réservation persistée d'une salle par une session"""
    room_id: str
    window: TimeWindow
    owner_session_id: str


class PlannedAssignment(BaseModel):
    """Réservation provisoire, valable uniquement pendant le batch courant"""
    session_key: str
    room_id: str
    window: TimeWindow


class TrainerIdentity(BaseModel):
    id: str
    first_name: str = ""
    last_name: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ==================== PLAN D'IMPORT ====================

class SessionWrite(BaseModel):
    """État cible complet d'une session (update ou création)"""
    id: str
    deal_id: str
    deal_product_id: Optional[str] = None
    name: str
    start: datetime
    end: datetime
    room_id: Optional[str] = None
    main_trainer_id: Optional[str] = None
    support_trainer_id: Optional[str] = None
    address: str = ""
    state: SessionState = SessionState.BORRADOR

    @property
    def trainer_ids(self) -> List[str]:
        ids = []
        for trainer_id in (self.main_trainer_id, self.support_trainer_id):
            if trainer_id and trainer_id not in ids:
                ids.append(trainer_id)
        return ids


class SessionImportPlan(BaseModel):
    """Toutes les écritures d'un batch, calculées avant toute mutation"""
    deal_id: str
    updates: List[SessionWrite] = []
    deletions: List[str] = []
    creations: List[SessionWrite] = []
    # booking_version lu pour chaque salle candidate (verrou optimiste au commit)
    room_versions: Dict[str, int] = {}

    @property
    def writes(self) -> List[SessionWrite]:
        return list(self.updates) + list(self.creations)

    @property
    def claimed_rooms(self) -> List[str]:
        """Salles attribuées par ce batch, triées (ordre de verrouillage stable)"""
        return sorted({w.room_id for w in self.writes if w.room_id and w.room_id in self.room_versions})


class ImportSummary(BaseModel):
    deal_id: str
    created: int = 0
    updated: int = 0
    removed: int = 0
    received_rows: int = 0
    accepted_rows: int = 0
    dropped_rows: int = 0
    unassigned_rooms: int = 0
    unresolved_trainers: List[str] = []


class SessionImportRequest(BaseModel):
    """Payload HTTP: {"dealId": "...", "rows": [...]}"""
    model_config = ConfigDict(populate_by_name=True)

    deal_id: str = Field("", alias="dealId")
    rows: List[Any] = []
