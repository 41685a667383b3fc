"""
ERP SESSIONS - Index des conflits de salles

Index en mémoire, privé à UN batch d'import:
- réservations persistées des autres sessions (par salle)
- réservations provisoires (PlannedAssignment) ajoutées au fil du batch

Les réservations des sessions marquées à supprimer dans le batch sont
ignorées dès la construction: leur capacité est considérée libérée.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from models import PlannedAssignment, RoomBooking, TimeWindow


def windows_overlap(a: TimeWindow, b: TimeWindow) -> bool:
    """start_a <= end_b AND end_a >= start_b (bornes incluses)"""
    return a.overlaps(b)


class RoomConflictIndex:

    def __init__(self, bookings: Iterable[RoomBooking], deleted_session_ids: Optional[Set[str]] = None):
        self.deleted_session_ids = set(deleted_session_ids or ())
        self._bookings: Dict[str, List[RoomBooking]] = defaultdict(list)
        self._planned: Dict[str, List[PlannedAssignment]] = defaultdict(list)
        for booking in bookings:
            if booking.owner_session_id in self.deleted_session_ids:
                continue
            self._bookings[booking.room_id].append(booking)

    def conflicts(self, room_id: str, window: TimeWindow, current_session_id: Optional[str] = None) -> bool:
        """True si la salle est déjà prise sur une fenêtre qui chevauche `window`"""
        for booking in self._bookings.get(room_id, ()):
            if current_session_id and booking.owner_session_id == current_session_id:
                continue
            if windows_overlap(booking.window, window):
                return True

        for planned in self._planned.get(room_id, ()):
            if current_session_id and planned.session_key == current_session_id:
                continue
            if windows_overlap(planned.window, window):
                return True

        return False

    def reserve(self, session_key: str, room_id: str, window: TimeWindow) -> PlannedAssignment:
        planned = PlannedAssignment(session_key=session_key, room_id=room_id, window=window)
        self._planned[room_id].append(planned)
        return planned

    @property
    def planned_assignments(self) -> List[PlannedAssignment]:
        return [p for items in self._planned.values() for p in items]
