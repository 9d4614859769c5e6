"""Booking lifecycle state machine.

    pending ──► confirmed ──► completed
       │            │
       └──► cancelled ◄┘

completed and cancelled are terminal.
"""
from __future__ import annotations

from enum import Enum
from typing import AbstractSet, Dict, FrozenSet, Tuple

from consultbook.core.exceptions import InvalidTransitionError, NotAuthorizedError
from consultbook.scheduling.types import BookingStatus


class ActorRole(str, Enum):
    OPERATOR = "operator"
    REQUESTER = "requester"


_S = BookingStatus
_OPERATOR = frozenset({ActorRole.OPERATOR})
_EITHER = frozenset({ActorRole.OPERATOR, ActorRole.REQUESTER})

TRANSITIONS: Dict[Tuple[BookingStatus, BookingStatus], FrozenSet[ActorRole]] = {
    (_S.PENDING, _S.CONFIRMED): _OPERATOR,
    (_S.PENDING, _S.CANCELLED): _EITHER,
    (_S.CONFIRMED, _S.CANCELLED): _EITHER,
    (_S.CONFIRMED, _S.COMPLETED): _OPERATOR,
}
"""Legal edges and the actor roles allowed to apply each."""


def check_transition(
    current: BookingStatus,
    target: BookingStatus,
    roles: AbstractSet[ActorRole],
) -> None:
    """Raise unless ``current -> target`` is an edge some role in ``roles`` may apply.

    The edge is checked first, so an illegal edge is reported as
    InvalidTransitionError whoever asks.
    """
    allowed = TRANSITIONS.get((current, target))
    if allowed is None:
        reason = "terminal" if current.is_terminal else "not_an_edge"
        raise InvalidTransitionError(
            f"Cannot move booking from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value, "reason": reason},
        )
    if not allowed & set(roles):
        raise NotAuthorizedError(
            f"Not allowed to move booking from {current.value} to {target.value}",
            details={
                "from": current.value,
                "to": target.value,
                "required": sorted(r.value for r in allowed),
            },
        )
