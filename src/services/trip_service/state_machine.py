from dataclasses import dataclass
from typing import Dict, List, Optional

from src.shared.models.enums import TripAction, TripStatus


@dataclass(frozen=True)
class Transition:
    source: TripStatus
    target: TripStatus
    timestamp_field: str


def _allowed_targets(transitions: Dict[TripAction, Transition]) -> Dict[TripStatus, List[TripStatus]]:
    allowed: Dict[TripStatus, List[TripStatus]] = {status: [] for status in TripStatus}
    for transition in transitions.values():
        allowed[transition.source].append(transition.target)
    return allowed


class TripStateMachine:
    """
    SCHEDULED -> IN_PROGRESS -> COMPLETED, SCHEDULED -> CANCELLED.
    COMPLETED and CANCELLED are terminal.
    """

    TRANSITIONS = {
        TripAction.START: Transition(TripStatus.SCHEDULED, TripStatus.IN_PROGRESS, "started_at"),
        TripAction.END: Transition(TripStatus.IN_PROGRESS, TripStatus.COMPLETED, "stopped_at"),
        TripAction.CANCEL: Transition(TripStatus.SCHEDULED, TripStatus.CANCELLED, "stopped_at"),
    }

    ALLOWED_TRANSITIONS = _allowed_targets(TRANSITIONS)

    TIMESTAMP_FIELDS = frozenset({"started_at", "stopped_at"})

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = TripStatus(current_status)
            new = TripStatus(new_status)
        except ValueError:
            return False
        return new in TripStateMachine.ALLOWED_TRANSITIONS.get(curr, [])

    @staticmethod
    def transition_for(action: TripAction) -> Optional[Transition]:
        return TripStateMachine.TRANSITIONS.get(action)
