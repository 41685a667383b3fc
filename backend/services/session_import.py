"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ERP SESSIONS - Import de sessions d'un deal (point d'entrée batch)          ║
║                                                                              ║
║  PIPELINE:                                                                   ║
║  1. Validation (dealId, lignes)          → ValidationError                   ║
║  2. Deal + produit catalogue             → NotFoundError                     ║
║  3. Parsing des lignes (aucune valide)   → ValidationError                   ║
║  4. Réconciliation par position triée                                        ║
║  5. Formateurs (fuzzy) + salles (aléatoire, index du batch)                  ║
║  6. Commit atomique du plan complet      → PersistenceError                  ║
║                                                                              ║
║  NON BLOQUANT: formateur introuvable, salle non attribuée, lignes            ║
║  invalides à côté de lignes valides → uniquement dans le résumé              ║
║  PAS DE RETRY: une nouvelle tentative tirerait d'autres salles               ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import random
import uuid
from typing import Any, List, Optional

from models import (
    DealRecord,
    ImportSummary,
    SessionImportPlan,
    SessionWrite,
    TimeWindow,
)
from services.import_errors import (
    NotFoundError,
    PersistenceError,
    SessionImportError,
    ValidationError,
)
from services.room_allocation import (
    ASSIGNED,
    DISABLED,
    UNAVAILABLE,
    RoomAllocator,
    deal_needs_room,
)
from services.room_conflicts import RoomConflictIndex
from services.session_reconciliation import reconcile
from services.session_row_parser import parse_rows
from services.trainer_resolver import TrainerDirectory, TrainerResolver, load_trainer_directory

logger = logging.getLogger("session_import")


def _batch_window(rows) -> TimeWindow:
    return TimeWindow(start=min(r.start for r in rows), end=max(r.end for r in rows))


async def _load_deal(store, deal_id: str) -> DealRecord:
    deal = await store.get_deal(deal_id)
    if deal is None:
        raise NotFoundError(f"Deal {deal_id} introuvable")
    if deal.session_product() is None:
        raise NotFoundError(f"Le deal {deal_id} n'a aucun produit de formation applicable")
    return deal


async def import_deal_sessions(
    deal_id: Any,
    rows: Optional[List[Any]],
    store=None,
    directory: Optional[TrainerDirectory] = None,
    coordinator=None,
    rng: Optional[random.Random] = None,
    allocation_enabled: Optional[bool] = None,
) -> ImportSummary:
    """
    Réconcilie les sessions du deal avec les lignes importées et commit le tout.

    Args:
        deal_id: ID du deal (presupuesto)
        rows: lignes brutes (en-têtes tableur ou clés API)
        store: lecture sessions/salles (défaut: MongoSessionStore)
        directory: annuaire formateurs (défaut: chargé depuis MongoDB)
        coordinator: commit transactionnel (défaut: MongoTransactionCoordinator)
        rng: générateur pour l'ordre des salles (tests)
        allocation_enabled: force le kill switch (défaut: config)

    Returns:
        ImportSummary

    Raises:
        ValidationError, NotFoundError, PersistenceError
    """
    deal_id = str(deal_id or "").strip()
    if not deal_id:
        raise ValidationError("dealId est obligatoire")
    if not isinstance(rows, list) or not rows:
        raise ValidationError("Aucune session à importer")

    if store is None or coordinator is None:
        from services.session_store import MongoSessionStore, MongoTransactionCoordinator
        store = store or MongoSessionStore()
        coordinator = coordinator or MongoTransactionCoordinator()

    # === 1. Deal + produit catalogue (avant toute écriture) ===
    deal = await _load_deal(store, deal_id)
    product = deal.session_product()

    # === 2. Parsing ===
    accepted, dropped = parse_rows(rows, deal_id)
    if not accepted:
        raise ValidationError("Aucune session valide dans la demande")

    # === 3. Réconciliation ===
    existing = await store.list_sessions_for_deal(deal_id)
    reconciliation = reconcile(existing, accepted)

    # === 4. Index des conflits, privé à ce batch ===
    needs_room = deal_needs_room(deal)
    bookings, rooms = [], []
    if needs_room:
        # Versions des salles lues AVANT les réservations: un import concurrent
        # qui s'intercale fait échouer le verrou au commit
        rooms = await store.list_rooms()
        bookings = await store.list_room_bookings(
            reconciliation.deleted_ids, between=_batch_window(accepted)
        )
    room_ids = [room.id for room in rooms]

    allocator = RoomAllocator(
        room_ids,
        RoomConflictIndex(bookings, reconciliation.deleted_ids),
        rng=rng,
        needs_room=needs_room,
        enabled=allocation_enabled,
    )
    if directory is None:
        directory = await load_trainer_directory()
    resolver = TrainerResolver(directory)

    base_name = product.session_base_name
    unassigned_rooms = 0
    updates: List[SessionWrite] = []
    creations: List[SessionWrite] = []
    position = 0

    # === 5. Updates puis créations, dans l'ordre trié des lignes ===
    for session, row in reconciliation.updates:
        position += 1
        result = allocator.allocate(
            row.window,
            session_key=session.id,
            current_session_id=session.id,
            current_room_id=session.room_id,
        )
        if result.status == UNAVAILABLE:
            unassigned_rooms += 1
        main = resolver.resolve(row.main_trainer_name)
        support = resolver.resolve(row.support_trainer_name)
        updates.append(SessionWrite(
            id=session.id,
            deal_id=deal_id,
            deal_product_id=session.deal_product_id or product.id,
            name=f"{base_name} #{position}",
            start=row.start,
            end=row.end,
            room_id=result.room_id if result.status in (ASSIGNED, DISABLED) else None,
            main_trainer_id=main.id if main else None,
            support_trainer_id=support.id if support else None,
            address=session.address or deal.training_address or "",
            state=row.state,
        ))

    for row in reconciliation.creations:
        position += 1
        new_id = str(uuid.uuid4())
        result = allocator.allocate(row.window, session_key=new_id)
        if result.status == UNAVAILABLE:
            unassigned_rooms += 1
        main = resolver.resolve(row.main_trainer_name)
        support = resolver.resolve(row.support_trainer_name)
        creations.append(SessionWrite(
            id=new_id,
            deal_id=deal_id,
            deal_product_id=product.id,
            name=f"{base_name} #{position}",
            start=row.start,
            end=row.end,
            room_id=result.room_id if result.assigned else None,
            main_trainer_id=main.id if main else None,
            support_trainer_id=support.id if support else None,
            address=deal.training_address or "",
            state=row.state,
        ))

    plan = SessionImportPlan(
        deal_id=deal_id,
        updates=updates,
        deletions=[s.id for s in reconciliation.deletions],
        creations=creations,
        room_versions={room.id: room.booking_version for room in rooms} if allocator.enabled else {},
    )

    # === 6. Commit atomique ===
    try:
        counts = await coordinator.apply(plan)
    except SessionImportError:
        raise
    except Exception as e:
        logger.error(f"[SESSION_IMPORT] Commit échoué deal={deal_id}: {e}")
        raise PersistenceError(f"Échec de l'enregistrement des sessions: {e}") from e

    summary = ImportSummary(
        deal_id=deal_id,
        created=counts.get("created", len(creations)),
        updated=counts.get("updated", len(updates)),
        removed=counts.get("removed", len(plan.deletions)),
        received_rows=len(rows),
        accepted_rows=len(accepted),
        dropped_rows=dropped,
        unassigned_rooms=unassigned_rooms,
        unresolved_trainers=resolver.unresolved,
    )

    logger.info(
        f"[SESSION_IMPORT] deal={deal_id} created={summary.created} updated={summary.updated} "
        f"removed={summary.removed} dropped={dropped} sans_salle={unassigned_rooms}"
    )
    return summary
