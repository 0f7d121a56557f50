from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor

from npcdialogue.config import Settings
from npcdialogue.llm.gateway import DialogueGateway
from npcdialogue.llm.providers import Provider
from npcdialogue.models.core import PlayerSnapshot, Position
from npcdialogue.npc.agent import ConversationalAgent
from npcdialogue.npc.fallback import busy_reply
from npcdialogue.npc.personality import Personality

log = logging.getLogger(__name__)

ReplyCallback = Callable[[str], None]


class DialogueTicket:
    """Completion handle for one ``generate_response`` request, polled by the frame loop."""

    def __init__(self, npc_id: str, future: Future, on_reply: ReplyCallback | None = None) -> None:
        self.npc_id = npc_id
        self.future = future
        self.on_reply = on_reply
        self.age = 0.0
        self._abandoned = False

    @classmethod
    def resolved(cls, npc_id: str, text: str, on_reply: ReplyCallback | None = None) -> DialogueTicket:
        future: Future = Future()
        future.set_result(text)
        return cls(npc_id, future, on_reply)

    def done(self) -> bool:
        return self.future.done()

    @property
    def cancelled(self) -> bool:
        return self._abandoned or self.future.cancelled()

    @property
    def reply(self) -> str | None:
        if self.cancelled or not self.future.done():
            return None
        return self.future.result()

    def wait(self, timeout: float | None = None) -> str | None:
        try:
            text = self.future.result(timeout=timeout)
        except CancelledError:
            return None
        return None if self._abandoned else text

    def cancel(self) -> None:
        """Abandon the request; a call already on the wire finishes but is never delivered."""
        self._abandoned = True
        self.future.cancel()


class DialogueService:
    """Registry of conversational NPCs and the worker pool their replies run on.

    Requests are submitted from the game loop and never block it. ``update`` is
    called once per frame to hand finished replies back through their callbacks.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        gateway: DialogueGateway | None = None,
        executor: ThreadPoolExecutor | None = None,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.clock = clock
        self.log = logger or log
        self._logger = logger
        self._owns_gateway = gateway is None
        self._owns_executor = executor is None
        self.gateway = gateway if gateway is not None else DialogueGateway(settings, logger=logger)
        if self._owns_gateway:
            self.log.info("dialogue_service_start settings=%s", settings.redacted())
        self._executor = executor if executor is not None else ThreadPoolExecutor(
            max_workers=settings.dialogue_workers,
            thread_name_prefix="npc-dialogue",
        )
        self._agents: dict[str, ConversationalAgent] = {}
        self._inflight: dict[str, DialogueTicket] = {}
        self._pending: list[DialogueTicket] = []
        self._lock = threading.Lock()
        self._closed = False

    def __enter__(self) -> DialogueService:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def agents(self) -> list[ConversationalAgent]:
        with self._lock:
            return list(self._agents.values())

    def get_agent(self, npc_id: str) -> ConversationalAgent:
        with self._lock:
            return self._agents[npc_id]

    def spawn(
        self,
        npc_id: str,
        name: str,
        personality: Personality,
        *,
        position: Position | None = None,
    ) -> ConversationalAgent:
        self._require_open()
        agent = ConversationalAgent(npc_id, name, personality, self.gateway, clock=self.clock, logger=self._logger)
        if position is not None:
            agent.position = position
        with self._lock:
            if npc_id in self._agents:
                raise ValueError(f"npc already spawned: {npc_id}")
            self._agents[npc_id] = agent
        return agent

    def despawn(self, npc_id: str) -> bool:
        with self._lock:
            agent = self._agents.pop(npc_id, None)
            ticket = self._inflight.pop(npc_id, None)
        if agent is None:
            return False
        agent.cancel()
        if ticket is not None:
            ticket.cancel()
        self.log.info("npc_despawned npc=%s inflight_cancelled=%s", npc_id, ticket is not None)
        return True

    def configure_gateway(self, provider: Provider | str, credential: str | None) -> None:
        self.gateway.configure(provider, credential)

    def set_ai_enabled(self, npc_id: str, enabled: bool) -> None:
        self.get_agent(npc_id).ai_enabled = enabled
        self.log.info("npc_ai_toggled npc=%s enabled=%s", npc_id, enabled)

    def generate_response(
        self,
        npc_id: str,
        player_input: str,
        player: PlayerSnapshot,
        *,
        on_reply: ReplyCallback | None = None,
    ) -> DialogueTicket:
        self._require_open()
        with self._lock:
            agent = self._agents[npc_id]
            existing = self._inflight.get(npc_id)
            if existing is not None and not existing.done():
                agent.last_interaction_ts = self.clock()
                self.log.warning("npc_dialogue_fallback npc=%s kind=busy", npc_id)
                ticket = DialogueTicket.resolved(npc_id, busy_reply(agent.name), on_reply)
            else:
                future = self._executor.submit(agent.generate_response, player_input, player)
                ticket = DialogueTicket(npc_id, future, on_reply)
                self._inflight[npc_id] = ticket
            self._pending.append(ticket)
        return ticket

    def update(self, dt: float) -> list[DialogueTicket]:
        """Deliver finished replies; returns the tickets whose callbacks ran this frame."""
        finished: list[DialogueTicket] = []
        with self._lock:
            still_pending: list[DialogueTicket] = []
            for ticket in self._pending:
                if ticket.done() or ticket.cancelled:
                    finished.append(ticket)
                else:
                    ticket.age += dt
                    still_pending.append(ticket)
            self._pending = still_pending
            for npc_id, ticket in list(self._inflight.items()):
                if ticket.done():
                    del self._inflight[npc_id]

        delivered: list[DialogueTicket] = []
        for ticket in finished:
            text = ticket.reply
            if text is None:
                continue
            if ticket.on_reply is not None:
                ticket.on_reply(text)
            delivered.append(ticket)
        return delivered

    def shutdown(self) -> None:
        """Cancel every NPC and abandon pending tickets without waiting.

        A request already on the wire is never delivered, but its worker thread
        still runs until the gateway returns or the connect/read timeout expires.
        Worker threads are not daemons, so interpreter exit waits for them.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            agents = list(self._agents.values())
            pending = list(self._pending)
            self._agents.clear()
            self._inflight.clear()
            self._pending.clear()
        for agent in agents:
            agent.cancel()
        for ticket in pending:
            ticket.cancel()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
        if self._owns_gateway:
            self.gateway.close()
        self.log.info("dialogue_service_shutdown agents=%s abandoned=%s", len(agents), len(pending))

    def _require_open(self) -> None:
        if self._closed:
            raise RuntimeError("dialogue_service_closed")
