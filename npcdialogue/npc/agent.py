from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol

from npcdialogue.errors import BusyError, DialogueError, EmptyResponseError, RequestCancelledError
from npcdialogue.models.core import ConversationTurn, PlayerSnapshot, Position
from npcdialogue.npc.fallback import busy_reply, keyword_reply, persona_reply
from npcdialogue.npc.personality import Personality
from npcdialogue.npc.transcript import Transcript

log = logging.getLogger(__name__)


class TextGateway(Protocol):
    def send(self, prompt: str) -> str: ...


class ConversationalAgent:
    """Dialogue state and orchestration for a single NPC.

    ``generate_response`` never raises: every failure becomes a fallback reply.
    The transcript only changes after a successful remote round trip, and at most
    one generation per agent runs at a time; a second caller gets the busy reply.
    """

    RECENT_EXCHANGES = 3

    def __init__(
        self,
        npc_id: str,
        name: str,
        personality: Personality,
        gateway: TextGateway,
        *,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        self._npc_id = npc_id
        self._name = name
        self._personality = personality
        self.gateway = gateway
        self.clock = clock
        self.log = logger or log
        self.transcript = Transcript()
        self.ai_enabled = True
        self.current_action = "idle"
        self.position = Position()
        self.last_interaction_ts = clock()
        self._memories: dict[str, str] = {}
        self._inventory: dict[str, int] = {}
        self._quests: set[str] = set()
        self._state_lock = threading.Lock()
        self._generation_lock = threading.Lock()
        self._cancelled = threading.Event()
        self.log.info("npc_created npc=%s name=%s personality=%s", npc_id, name, personality.identifier)

    @property
    def npc_id(self) -> str:
        return self._npc_id

    @property
    def name(self) -> str:
        return self._name

    @property
    def personality(self) -> Personality:
        return self._personality

    @property
    def memories(self) -> dict[str, str]:
        with self._state_lock:
            return dict(self._memories)

    @property
    def inventory(self) -> dict[str, int]:
        with self._state_lock:
            return dict(self._inventory)

    @property
    def quests(self) -> frozenset[str]:
        with self._state_lock:
            return frozenset(self._quests)

    @property
    def busy(self) -> bool:
        return self._generation_lock.locked()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def set_position(self, x: float, y: float, z: float) -> None:
        self.position = Position(x, y, z)

    def cancel(self) -> None:
        self._cancelled.set()
        self.log.info("npc_dialogue_cancelled npc=%s", self.npc_id)

    def generate_response(self, player_input: str, player: PlayerSnapshot) -> str:
        self.last_interaction_ts = self.clock()

        if not self.ai_enabled:
            return persona_reply(self.personality)

        if not self._generation_lock.acquire(blocking=False):
            self._log_fallback(BusyError("generation_in_flight"))
            return busy_reply(self.name)
        try:
            return self._generate(player_input, player)
        finally:
            self._generation_lock.release()

    def _generate(self, player_input: str, player: PlayerSnapshot) -> str:
        try:
            if self._cancelled.is_set():
                raise RequestCancelledError("cancelled_before_dispatch")
            prompt = self.build_prompt(player_input, player)
            reply = clean_reply(self.gateway.send(prompt), self.name)
            if not reply:
                raise EmptyResponseError("reply_empty_after_cleanup")
            with self._state_lock:
                if self._cancelled.is_set():
                    raise RequestCancelledError("cancelled_in_flight")
                self.transcript.append_exchange(player_input, self.name, reply)
            return reply
        except DialogueError as exc:
            self._log_fallback(exc)
        except Exception:
            self.log.warning("npc_dialogue_failed npc=%s fallback=keyword", self.npc_id, exc_info=True)
        return keyword_reply(self.name, player_input)

    def _log_fallback(self, exc: DialogueError) -> None:
        self.log.warning(
            "npc_dialogue_fallback npc=%s kind=%s status=%s detail=%s",
            self.npc_id,
            exc.kind,
            getattr(exc, "status", None),
            str(exc),
        )

    def build_context(self, player: PlayerSnapshot) -> str:
        with self._state_lock:
            inventory = _render_mapping(self._inventory)
            memories = _render_mapping(self._memories)
        return (
            "NPC Info:\n"
            f"Name: {self.name}\n"
            f"Personality: {self.personality.display_name}\n"
            f"Current Action: {self.current_action}\n"
            f"Inventory: {inventory}\n"
            f"Memories: {memories}\n"
            "\n"
            "Player Info:\n"
            f"Level: {player.level}\n"
            f"Resources: {player.resource_type_count} types\n"
        )

    def build_prompt(self, player_input: str, player: PlayerSnapshot) -> str:
        context = self.build_context(player)
        return (
            f"You are {self.name}, an NPC in a Minecraft-like RPG game with personality: "
            f"{self.personality.description}.\n"
            "\n"
            "Context:\n"
            f"{context}\n"
            "Recent conversation:\n"
            f"{self.recent_conversation(self.RECENT_EXCHANGES)}\n"
            "\n"
            f'Player says: "{player_input}"\n'
            "\n"
            f"Respond naturally as {self.name}, staying in character and considering the context.\n"
            "Keep responses concise (1-3 sentences) and relevant to the game world."
        )

    def recent_conversation(self, exchanges: int = RECENT_EXCHANGES) -> str:
        with self._state_lock:
            return self.transcript.render_recent(exchanges)

    def history(self) -> list[ConversationTurn]:
        with self._state_lock:
            return self.transcript.turns

    def add_memory(self, key: str, value: str) -> None:
        with self._state_lock:
            self._memories[key] = value
        self.log.info("npc_memory_added npc=%s key=%s", self.npc_id, key)

    def add_to_inventory(self, resource: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"inventory amount must be non-negative, got {amount}")
        with self._state_lock:
            self._inventory[resource] = self._inventory.get(resource, 0) + amount

    def remove_from_inventory(self, resource: str, amount: int) -> bool:
        if amount < 0:
            raise ValueError(f"inventory amount must be non-negative, got {amount}")
        with self._state_lock:
            current = self._inventory.get(resource, 0)
            if current < amount:
                return False
            self._inventory[resource] = current - amount
            return True

    def add_quest(self, quest_id: str) -> None:
        with self._state_lock:
            self._quests.add(quest_id)


def _render_mapping(values: dict[str, Any]) -> str:
    items = ", ".join(f"{key}={values[key]}" for key in sorted(values))
    return "{" + items + "}"


def clean_reply(raw: str, npc_name: str) -> str:
    if not raw:
        return ""
    text = raw.strip()
    parsed = _try_parse_jsonish(text)
    if isinstance(parsed, dict):
        for key in ("message", "reply", "dialogue", "text"):
            value = parsed.get(key)
            if isinstance(value, str) and value.strip():
                text = value.strip()
                break
    label = f"{npc_name}:"
    if npc_name and text.startswith(label):
        text = text[len(label) :].strip()
    return text


def _try_parse_jsonish(text: str) -> dict[str, Any] | None:
    # Only a reply that is one JSON object as a whole is unwrapped.
    if not (text.startswith("{") and text.endswith("}")):
        return None
    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None
