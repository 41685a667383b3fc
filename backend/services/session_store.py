"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ERP SESSIONS - Stockage MongoDB des sessions                                ║
║                                                                              ║
║  Collections:                                                                ║
║  - deals             (presupuestos + produits catalogue)                     ║
║  - sessions          (dates ISO UTC, room_id, state)                         ║
║  - session_trainers  (liens session ↔ formateur, role main|support)          ║
║  - session_units     (lien session ↔ unité mobile par défaut)                ║
║  - rooms             (booking_version = verrou optimiste)                    ║
║                                                                              ║
║  MongoTransactionCoordinator: TOUT le plan dans UNE transaction              ║
║  (replica set requis). Échec → abort, rien n'est visible.                    ║
║  Les lectures du batch se font hors transaction: chaque salle attribuée      ║
║  est verrouillée par sa booking_version → un import concurrent qui a         ║
║  attribué la même salle fait échouer ce commit (PersistenceError).           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Dict, Iterable, List, Optional

from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from config import DEFAULT_MOBILE_UNIT_ID, client as mongo_client, db as mongo_db, now_iso, parse_iso
from models import (
    ACTIVE_SESSION_STATES,
    DealRecord,
    Room,
    RoomBooking,
    SessionImportPlan,
    SessionRecord,
    SessionWrite,
    TimeWindow,
)
from services.import_errors import PersistenceError
from services.session_row_parser import parse_state

logger = logging.getLogger("session_store")


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def session_from_doc(doc: dict, trainer_ids: Optional[List[str]] = None) -> SessionRecord:
    return SessionRecord(
        id=doc["id"],
        deal_id=doc.get("deal_id") or "",
        deal_product_id=doc.get("deal_product_id"),
        name=doc.get("name") or "",
        start=parse_iso(doc.get("start_at")),
        end=parse_iso(doc.get("end_at")),
        room_id=doc.get("room_id"),
        trainer_ids=trainer_ids or [],
        address=doc.get("address") or "",
        state=parse_state(doc.get("state")),
        created_at=parse_iso(doc.get("created_at")),
    )


def session_write_to_doc(write: SessionWrite) -> dict:
    return {
        "id": write.id,
        "deal_id": write.deal_id,
        "deal_product_id": write.deal_product_id,
        "name": write.name,
        "start_at": _iso(write.start),
        "end_at": _iso(write.end),
        "room_id": write.room_id,
        "address": write.address,
        "state": write.state.value,
    }


def trainer_link_docs(write: SessionWrite) -> List[dict]:
    links = []
    if write.main_trainer_id:
        links.append({"session_id": write.id, "trainer_id": write.main_trainer_id, "role": "main"})
    if write.support_trainer_id and write.support_trainer_id != write.main_trainer_id:
        links.append({"session_id": write.id, "trainer_id": write.support_trainer_id, "role": "support"})
    return links


def unit_link_docs(writes: Iterable[SessionWrite], unit_id: Optional[str]) -> List[dict]:
    if not unit_id:
        return []
    return [{"session_id": w.id, "unit_id": unit_id} for w in writes]


class MongoSessionStore:
    """Lectures nécessaires à un batch d'import"""

    def __init__(self, database=None):
        self.db = database if database is not None else mongo_db

    async def get_deal(self, deal_id: str) -> Optional[DealRecord]:
        doc = await self.db.deals.find_one({"deal_id": deal_id}, {"_id": 0})
        if not doc:
            return None
        return DealRecord(**doc)

    async def list_sessions_for_deal(self, deal_id: str) -> List[SessionRecord]:
        docs = await self.db.sessions.find({"deal_id": deal_id}, {"_id": 0}).to_list(1000)
        if not docs:
            return []

        links = await self.db.session_trainers.find(
            {"session_id": {"$in": [d["id"] for d in docs]}},
            {"_id": 0, "session_id": 1, "trainer_id": 1, "role": 1}
        ).to_list(5000)

        trainers: Dict[str, List[str]] = {}
        # main avant support
        for link in sorted(links, key=lambda l: 0 if l.get("role") == "main" else 1):
            trainers.setdefault(link["session_id"], []).append(link["trainer_id"])

        return [session_from_doc(d, trainers.get(d["id"])) for d in docs]

    async def list_room_bookings(
        self,
        excluding_ids: Iterable[str] = (),
        between: Optional[TimeWindow] = None,
    ) -> List[RoomBooking]:
        """Réservations actives de salles, hors sessions `excluding_ids`"""
        query = {
            "room_id": {"$ne": None},
            "state": {"$in": ACTIVE_SESSION_STATES},
            "start_at": {"$ne": None},
            "end_at": {"$ne": None},
        }
        excluded = list(excluding_ids)
        if excluded:
            query["id"] = {"$nin": excluded}
        if between is not None:
            # ISO UTC homogènes → comparaison lexicographique valide
            query["start_at"] = {"$ne": None, "$lte": _iso(between.end)}
            query["end_at"] = {"$ne": None, "$gte": _iso(between.start)}

        docs = await self.db.sessions.find(
            query,
            {"_id": 0, "id": 1, "room_id": 1, "start_at": 1, "end_at": 1}
        ).to_list(None)

        bookings = []
        for d in docs:
            start, end = parse_iso(d.get("start_at")), parse_iso(d.get("end_at"))
            if start is None or end is None:
                continue
            bookings.append(RoomBooking(
                room_id=d["room_id"],
                window=TimeWindow(start=start, end=end),
                owner_session_id=d["id"],
            ))
        return bookings

    async def list_rooms(self) -> List[Room]:
        docs = await self.db.rooms.find(
            {"active": {"$ne": False}},
            {"_id": 0, "id": 1, "name": 1, "booking_version": 1}
        ).sort("id", 1).to_list(1000)
        return [
            Room(id=d["id"], name=d.get("name") or "", booking_version=d.get("booking_version") or 0)
            for d in docs
            if d.get("id")
        ]


class MongoTransactionCoordinator:
    """Applique un SessionImportPlan de façon atomique"""

    def __init__(self, motor_client=None, database=None, default_unit_id: Optional[str] = None):
        self.client = motor_client if motor_client is not None else mongo_client
        self.db = database if database is not None else mongo_db
        self.default_unit_id = default_unit_id if default_unit_id is not None else DEFAULT_MOBILE_UNIT_ID

    async def _claim_rooms(self, plan: SessionImportPlan, now: str, s) -> None:
        """
        Verrou optimiste: booking_version doit être celle lue au début du batch.
        Deux batches concurrents qui attribuent la même salle écrivent le même
        document → un seul commit passe.
        """
        for room_id in plan.claimed_rooms:
            version = plan.room_versions[room_id]
            # Version 0 = champ absent sur les salles jamais attribuées
            expected = version if version else {"$in": [0, None]}
            result = await self.db.rooms.update_one(
                {"id": room_id, "booking_version": expected},
                {"$inc": {"booking_version": 1}, "$set": {"updated_at": now}},
                session=s,
            )
            if result.matched_count == 0:
                raise PersistenceError(
                    f"Salle {room_id} modifiée par un autre import, relancer l'import du deal {plan.deal_id}"
                )

    async def apply(self, plan: SessionImportPlan) -> Dict[str, int]:
        now = now_iso()
        touched = [w.id for w in plan.writes]

        async with await self.client.start_session() as s:
            async with s.start_transaction(
                read_concern=ReadConcern("snapshot"),
                write_concern=WriteConcern("majority"),
            ):
                # 0. Verrou des salles attribuées
                await self._claim_rooms(plan, now, s)

                # 1. Suppressions d'abord (libère les salles)
                removed = 0
                if plan.deletions:
                    await self.db.session_trainers.delete_many(
                        {"session_id": {"$in": plan.deletions}}, session=s
                    )
                    await self.db.session_units.delete_many(
                        {"session_id": {"$in": plan.deletions}}, session=s
                    )
                    result = await self.db.sessions.delete_many(
                        {"id": {"$in": plan.deletions}}, session=s
                    )
                    removed = result.deleted_count

                # 2. Mises à jour sur place
                updated = 0
                for write in plan.updates:
                    doc = session_write_to_doc(write)
                    doc["updated_at"] = now
                    result = await self.db.sessions.update_one(
                        {"id": write.id}, {"$set": doc}, session=s
                    )
                    if result.matched_count == 0:
                        raise PersistenceError(f"Session {write.id} supprimée pendant l'import")
                    updated += 1

                # 3. Créations
                if plan.creations:
                    docs = []
                    for write in plan.creations:
                        doc = session_write_to_doc(write)
                        doc["created_at"] = now
                        doc["updated_at"] = now
                        docs.append(doc)
                    await self.db.sessions.insert_many(docs, session=s)

                # 4. Liens formateurs + unité mobile remplacés
                if touched:
                    await self.db.session_trainers.delete_many(
                        {"session_id": {"$in": touched}}, session=s
                    )
                    links = [link for write in plan.writes for link in trainer_link_docs(write)]
                    if links:
                        await self.db.session_trainers.insert_many(links, session=s)

                    await self.db.session_units.delete_many(
                        {"session_id": {"$in": touched}}, session=s
                    )
                    units = unit_link_docs(plan.writes, self.default_unit_id)
                    if units:
                        await self.db.session_units.insert_many(units, session=s)

        logger.info(
            f"[SESSION_STORE] Commit deal={plan.deal_id} "
            f"created={len(plan.creations)} updated={updated} removed={removed} "
            f"salles={len(plan.claimed_rooms)}"
        )
        return {"created": len(plan.creations), "updated": updated, "removed": removed}
