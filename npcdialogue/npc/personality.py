from __future__ import annotations

from enum import Enum


class Personality(Enum):
    FRIENDLY = ("friendly", "Friendly", "Helpful and encouraging")
    MERCHANT = ("merchant", "Merchant", "Focuses on trading and business")
    WARRIOR = ("warrior", "Warrior", "Combat-focused and brave")
    MAGE = ("mage", "Mage", "Magical and mysterious")
    TRADER = ("trader", "Trader", "Good at finding rare items")
    EXPLORER = ("explorer", "Explorer", "Knowledgeable about the world")
    GUARD = ("guard", "Guard", "Protective and dutiful")
    VILLAGER = ("villager", "Villager", "Simple and hardworking")

    def __init__(self, identifier: str, display_name: str, description: str) -> None:
        self.identifier = identifier
        self.display_name = display_name
        self.description = description

    @classmethod
    def from_identifier(cls, identifier: str) -> Personality:
        normalized = (identifier or "").strip().lower()
        for personality in cls:
            if personality.identifier == normalized:
                return personality
        raise ValueError(f"unknown_personality identifier={identifier!r}")
