"""
ERP Sessions - Routes Import de sessions
POST /api/sessions/import  {"dealId": "...", "rows": [...]}

L'authentification est gérée en amont (hors de ce service).
"""

from fastapi import APIRouter, Depends, HTTPException

from models import SessionImportRequest
from services.import_errors import SessionImportError
from services.session_import import import_deal_sessions
from services.session_store import MongoSessionStore, MongoTransactionCoordinator
from services.trainer_resolver import load_trainer_directory

router = APIRouter(prefix="/sessions", tags=["Sessions"])


# ==================== DÉPENDANCES ====================

def get_session_store():
    return MongoSessionStore()


def get_transaction_coordinator():
    return MongoTransactionCoordinator()


async def get_trainer_directory():
    return await load_trainer_directory()


# ==================== IMPORT ====================

@router.post("/import")
async def import_sessions(
    data: SessionImportRequest,
    store=Depends(get_session_store),
    coordinator=Depends(get_transaction_coordinator),
    directory=Depends(get_trainer_directory),
):
    """
    Importe les sessions d'un deal.

    Réponse: compteurs created / updated / removed + lignes ignorées,
    salles non attribuées, formateurs non résolus.
    """
    try:
        summary = await import_deal_sessions(
            data.deal_id,
            data.rows,
            store=store,
            directory=directory,
            coordinator=coordinator,
        )
    except SessionImportError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {
        "success": True,
        **summary.model_dump(),
        "message": f"{summary.created} créées, {summary.updated} mises à jour, {summary.removed} supprimées",
    }
