"""Offline replies used whenever the remote dialogue path is unavailable.

Two policies with separate call sites:

* ``persona_reply`` answers for an NPC whose AI is switched off, before any
  remote attempt. One fixed line per personality.
* ``keyword_reply`` answers after a remote attempt failed. It scans the
  lowercased player input for keywords, first match wins.
"""

from __future__ import annotations

from npcdialogue.npc.personality import Personality

PERSONA_REPLIES: dict[Personality, str] = {
    Personality.FRIENDLY: "Hello there! I'm happy to help you on your adventure!",
    Personality.MERCHANT: "Looking to trade? I have some interesting items available.",
    Personality.WARRIOR: "Greetings, adventurer! Ready for battle?",
    Personality.MAGE: "The arcane energies are strong today... How may I assist you?",
    Personality.TRADER: "I've come across a few rare finds lately. Care to take a look?",
    Personality.EXPLORER: "I've wandered far and wide. Ask me anything about these lands.",
    Personality.GUARD: "Move along safely, traveler. I keep watch over this place.",
    Personality.VILLAGER: "Good day to you! There's always work to be done around here.",
}

DEFAULT_PERSONA_REPLY = "Hello! What can I do for you?"

KEYWORD_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("hello", "hi"), "greeting"),
    (("trade", "buy", "sell"), "trade"),
    (("quest", "mission"), "quest"),
)


def persona_reply(personality: Personality) -> str:
    return PERSONA_REPLIES.get(personality, DEFAULT_PERSONA_REPLY)


def match_keyword(player_input: str) -> str:
    lower = (player_input or "").lower()
    for keywords, category in KEYWORD_RULES:
        if any(keyword in lower for keyword in keywords):
            return category
    return "generic"


def keyword_reply(npc_name: str, player_input: str) -> str:
    category = match_keyword(player_input)
    if category == "greeting":
        return f"Hello! I'm {npc_name}. Nice to meet you!"
    if category == "trade":
        return "I have some items for trade. What are you looking for?"
    if category == "quest":
        return "I might have a task for someone of your level. Are you interested?"
    return "I'm not sure how to respond to that. Is there something specific you need?"


def busy_reply(npc_name: str) -> str:
    return f"{npc_name} raises a hand. \"One moment, I'm still thinking on what you said.\""
