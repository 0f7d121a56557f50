from npcdialogue.npc.agent import ConversationalAgent, clean_reply
from npcdialogue.npc.fallback import busy_reply, keyword_reply, match_keyword, persona_reply
from npcdialogue.npc.personality import Personality
from npcdialogue.npc.transcript import Transcript

__all__ = [
    "ConversationalAgent",
    "Personality",
    "Transcript",
    "busy_reply",
    "clean_reply",
    "keyword_reply",
    "match_keyword",
    "persona_reply",
]
