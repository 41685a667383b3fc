"""
ERP Sessions — In-memory collaborators for tests.
FakeSessionStore / FakeCoordinator mirror MongoSessionStore / MongoTransactionCoordinator.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from models import (
    ACTIVE_SESSION_STATES,
    DealProduct,
    DealRecord,
    Room,
    RoomBooking,
    SessionRecord,
    TrainerIdentity,
)
from services.trainer_resolver import TrainerDirectory


def run(coro):
    """Run async code in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def utc(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def make_deal(deal_id="D-100", pipeline_label="Formación Empresa", sede_label="GEP Arganda", products=None):
    if products is None:
        products = [DealProduct(id="P-1", name="Extinción", code="form-ext-01")]
    return DealRecord(
        deal_id=deal_id,
        title="Deal test",
        pipeline_label=pipeline_label,
        sede_label=sede_label,
        training_address="Calle Primavera 1",
        products=products,
    )


def make_session(session_id, start, end, deal_id="D-100", room_id=None, created_at=None, state="BORRADOR"):
    return SessionRecord(
        id=session_id,
        deal_id=deal_id,
        deal_product_id="P-1",
        name=f"Extinción #{session_id}",
        start=start,
        end=end,
        room_id=room_id,
        state=state,
        created_at=created_at or utc(2024, 1, 1),
    )


def make_directory():
    return TrainerDirectory([
        TrainerIdentity(id="T-ANA", first_name="Ana", last_name="Pérez"),
        TrainerIdentity(id="T-JOSE", first_name="José", last_name="García López"),
        TrainerIdentity(id="T-MARTA", first_name="Marta", last_name="Sánchez"),
    ])


def row(number, start, end, trainer="", trainer_sup="", estado=""):
    """Payload row as sent by the bulk import screen."""
    return {
        "sessionNumber": str(number),
        "start": start.isoformat(),
        "end": end.isoformat(),
        "trainer": trainer,
        "trainerSup": trainer_sup,
        "estado": estado,
    }


class FakeSessionStore:

    def __init__(self, deal=None, sessions=(), rooms=(), foreign_bookings=()):
        self.deal = deal
        self.sessions = list(sessions)
        self.rooms = list(rooms)
        self.foreign_bookings = list(foreign_bookings)
        self.calls = []

    async def get_deal(self, deal_id):
        self.calls.append("get_deal")
        if self.deal is not None and self.deal.deal_id == deal_id:
            return self.deal
        return None

    async def list_sessions_for_deal(self, deal_id):
        self.calls.append("list_sessions_for_deal")
        return [s for s in self.sessions if s.deal_id == deal_id]

    async def list_room_bookings(self, excluding_ids=(), between=None):
        self.calls.append("list_room_bookings")
        excluded = set(excluding_ids)
        bookings = [
            RoomBooking(room_id=s.room_id, window=s.window, owner_session_id=s.id)
            for s in self.sessions
            if s.room_id and s.window is not None
            and s.state.value in ACTIVE_SESSION_STATES
            and s.id not in excluded
        ]
        return bookings + [b for b in self.foreign_bookings if b.owner_session_id not in excluded]

    async def list_rooms(self):
        self.calls.append("list_rooms")
        return [Room(id=room_id, name=f"Sala {room_id}") for room_id in self.rooms]


class FakeCoordinator:
    """Applies the plan to the fake store, all or nothing."""

    def __init__(self, store, fail=False):
        self.store = store
        self.fail = fail
        self.plans = []
        self._clock = utc(2025, 1, 1)

    async def apply(self, plan):
        self.plans.append(plan)
        if self.fail:
            raise RuntimeError("write conflict")

        by_id = {s.id: s for s in self.store.sessions}
        for session_id in plan.deletions:
            by_id.pop(session_id, None)

        for write in plan.updates:
            current = by_id[write.id]
            by_id[write.id] = current.model_copy(update={
                "name": write.name,
                "start": write.start,
                "end": write.end,
                "room_id": write.room_id,
                "trainer_ids": write.trainer_ids,
                "address": write.address,
                "state": write.state,
            })

        for write in plan.creations:
            self._clock += timedelta(seconds=1)
            by_id[write.id] = SessionRecord(
                id=write.id,
                deal_id=write.deal_id,
                deal_product_id=write.deal_product_id,
                name=write.name,
                start=write.start,
                end=write.end,
                room_id=write.room_id,
                trainer_ids=write.trainer_ids,
                address=write.address,
                state=write.state,
                created_at=self._clock,
            )

        self.store.sessions = list(by_id.values())
        return {
            "created": len(plan.creations),
            "updated": len(plan.updates),
            "removed": len(plan.deletions),
        }
