"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ERP SESSIONS - Models Package                                               ║
║                                                                              ║
║  Exports tous les modèles pour import facile                                 ║
║  from models import SessionRecord, ImportRow, DealRecord, etc.               ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Deal (presupuesto CRM)
from .deal import (
    APPLICABLE_PRODUCT_PREFIXES,
    DealProduct,
    DealRecord,
)

# Session / Salle / Formateur
from .session import (
    SessionState,
    ACTIVE_SESSION_STATES,
    TimeWindow,
    ImportRow,
    SessionRecord,
    Room,
    RoomBooking,
    PlannedAssignment,
    TrainerIdentity,
    SessionWrite,
    SessionImportPlan,
    ImportSummary,
    SessionImportRequest,
)

__all__ = [
    # Deal
    "APPLICABLE_PRODUCT_PREFIXES",
    "DealProduct",
    "DealRecord",
    # Session
    "SessionState",
    "ACTIVE_SESSION_STATES",
    "TimeWindow",
    "ImportRow",
    "SessionRecord",
    "Room",
    "RoomBooking",
    "PlannedAssignment",
    "TrainerIdentity",
    "SessionWrite",
    "SessionImportPlan",
    "ImportSummary",
    "SessionImportRequest",
]
