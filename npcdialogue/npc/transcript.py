from __future__ import annotations

from npcdialogue.models.core import PLAYER_SPEAKER, ConversationTurn


class Transcript:
    """Bounded exchange history for one NPC.

    Invariant: never more than ``MAX_TURNS`` entries. When an exchange pushes the
    length past the bound, the oldest ``TRIM_TURNS`` entries are dropped in one
    step, so a full transcript of 20 becomes 12 after the next exchange.
    This is not a sliding window.
    """

    MAX_TURNS = 20
    TRIM_TURNS = 10

    def __init__(self) -> None:
        self._turns: list[ConversationTurn] = []

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self):
        return iter(list(self._turns))

    @property
    def turns(self) -> list[ConversationTurn]:
        return list(self._turns)

    def append_exchange(self, player_text: str, npc_name: str, npc_text: str) -> None:
        self._turns.append(ConversationTurn(PLAYER_SPEAKER, player_text))
        self._turns.append(ConversationTurn(npc_name, npc_text))
        if len(self._turns) > self.MAX_TURNS:
            del self._turns[: self.TRIM_TURNS]

    def recent(self, exchanges: int = 3) -> list[ConversationTurn]:
        if exchanges <= 0:
            return []
        return self._turns[-exchanges * 2 :]

    def render_recent(self, exchanges: int = 3) -> str:
        return "\n".join(turn.render() for turn in self.recent(exchanges))
