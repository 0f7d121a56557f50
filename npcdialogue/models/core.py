from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

PLAYER_SPEAKER = "player"


@dataclass(frozen=True)
class ConversationTurn:
    speaker: str
    text: str

    def render(self) -> str:
        return f"{self.speaker}: {self.text}"


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class PlayerSnapshot(BaseModel):
    """Read-only view of the player's progression handed in by the game loop."""

    model_config = ConfigDict(frozen=True)

    level: int = Field(default=1, ge=0)
    resource_type_count: int = Field(default=0, ge=0)

    @classmethod
    def from_resources(cls, level: int, resources: Mapping[str, int]) -> PlayerSnapshot:
        return cls(level=level, resource_type_count=len(resources))
