"""World and distance collaborator used by proximity channels."""

from __future__ import annotations

import math
from typing import Protocol

from .models import Player


class SpatialIndex(Protocol):
    def same_space(self, a: Player, b: Player) -> bool: ...

    def distance(self, a: Player, b: Player) -> float: ...


class EuclideanSpace:
    """Straight-line distance between player locations within one world."""

    def same_space(self, a: Player, b: Player) -> bool:
        if a.location is None or b.location is None:
            return False
        return a.location.world == b.location.world

    def distance(self, a: Player, b: Player) -> float:
        if a.location is None or b.location is None:
            return math.inf
        return math.dist(
            (a.location.x, a.location.y, a.location.z),
            (b.location.x, b.location.y, b.location.z),
        )
