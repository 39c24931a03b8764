"""Resource amounts carried home by a raid."""

from __future__ import annotations

from farmintel.models.base import IntelModel


class Loot(IntelModel):
    wood: int = 0
    clay: int = 0
    iron: int = 0
    crop: int = 0

    @property
    def total(self) -> int:
        return self.wood + self.clay + self.iron + self.crop

    def __add__(self, other: Loot) -> Loot:
        return Loot(
            wood=self.wood + other.wood,
            clay=self.clay + other.clay,
            iron=self.iron + other.iron,
            crop=self.crop + other.crop,
        )
