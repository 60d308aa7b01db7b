"""
dnsentinel/detectors/scoring.py
ScoreSheet: ordered (label, weight) contributions, summed once.

Each classifier records every rule that fired instead of bumping a running
integer, so a final score can always be traced back to its causes:
score == sum(c.weight for c in contributions).
"""

from typing import List, Tuple

from dnsentinel.models.record import Contribution


class ScoreSheet:

    def __init__(self):
        self._items: List[Contribution] = []

    def add(self, label: str, weight: int) -> None:
        self._items.append(Contribution(label=label, weight=weight))

    @property
    def total(self) -> int:
        return sum(c.weight for c in self._items)

    def contributions(self) -> Tuple[Contribution, ...]:
        return tuple(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
