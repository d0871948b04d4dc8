"""Status transitions of a single Nachweis.

Any status may currently move to any other status when a trainer or admin acts;
the role check happens in the services. ``can_transition`` is the single place a
guard would be added.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from .models import Nachweis, Status

TRANSITIONS: Dict[Status, FrozenSet[Status]] = {state: frozenset(Status) for state in Status}

NOTIFICATION_TYPES: Dict[Status, str] = {
    Status.ANGENOMMEN: "SUCCESS",
    Status.ABGELEHNT: "WARNING",
    Status.IN_BEARBEITUNG: "INFO",
}

STATUS_LABELS: Dict[Status, str] = {
    Status.IN_BEARBEITUNG: "in Bearbeitung",
    Status.ANGENOMMEN: "angenommen",
    Status.ABGELEHNT: "abgelehnt",
}


@dataclass(frozen=True)
class Transition:
    record_id: int
    previous: Status
    current: Status
    comment: Optional[str]

    @property
    def changed(self) -> bool:
        return self.previous != self.current


def can_transition(current: Status, target: Status) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def apply_transition(record: Nachweis, target: Status, comment: Optional[str] = None) -> Transition:
    """Move ``record`` to ``target``; a given comment replaces the stored one.

    Raises ``ValueError`` when the transition is not allowed.
    """

    previous = Status(record.status)
    if not can_transition(previous, target):
        raise ValueError(f"Statuswechsel von {previous.value} nach {target.value} ist nicht erlaubt")
    record.status = target.value
    if comment is not None:
        record.comment = comment
    return Transition(record_id=record.id, previous=previous, current=target, comment=comment)
