"""
CompanionReactorAgent — in-character reactions from AI party members.

Called once per living, conscious AI companion, either before the DM
narrates (reacting to the player's proposal) or after (reacting to what
happened). Silence is a normal answer: an empty reply means the companion
says nothing this time.
"""

import json
import logging
from typing import List, Optional

from pydantic import BaseModel

from models.characters import Character
from agents.gemini_call import generate_text, strip_json_fences

logger = logging.getLogger('CompanionReactor')

REACTION_TIMINGS = ("before_dm", "after_dm")

COMPANION_IDENTITY = """You voice ONE AI-controlled companion in a D&D party.
Realism over reactivity: not everyone speaks every time, and silence is often the most natural answer.
React only if the player addresses you directly, the moment is tense or important, or something
fits your personality. Keep it to one short line of dialogue or a brief non-verbal action.

Output ONLY a JSON object: {"action": "..."}
Use {"action": ""} to stay silent."""


class CompanionReaction(BaseModel):
    character_id: str
    character_name: str
    action: str
    timing: str = "before_dm"


class CompanionReactorAgent:
    """Produces zero or one reaction line per companion call."""

    def __init__(self, client, model_id: str = "gemini-2.0-flash", limiter=None,
                 max_retries: int = 3, initial_delay: float = 1.0):
        self.client = client
        self.model_id = model_id
        self.limiter = limiter
        self.max_retries = max_retries
        self.initial_delay = initial_delay

    @staticmethod
    def build_context(
        character: Character,
        player_action: str,
        timing: str,
        targeted: bool = False,
        dm_narration: Optional[str] = None,
    ) -> str:
        if timing == "after_dm":
            context = f'The player\'s action was: "{player_action}"'
            if dm_narration:
                context += f'\n\nDM narration (what just happened):\n"{dm_narration}"'
        else:
            context = f'The player just proposed/said: "{player_action}"'
        if targeted:
            context += "\n\n(You are being directly addressed.)"
        return context

    async def react(
        self,
        character: Character,
        party: List[Character],
        player_action: str,
        timing: str = "before_dm",
        targeted: bool = False,
        dm_narration: Optional[str] = None,
        in_combat: bool = False,
    ) -> Optional[CompanionReaction]:
        """One companion's reaction, or None for silence or any failure."""
        if not self.client:
            return None

        party_lines = "\n".join(
            f"- {p.name} ({p.race} {p.char_class}, HP {p.hp.current}/{p.hp.max})" for p in party
        )
        personality = getattr(character, "personality", None) or "Not specified"
        prompt = f"""## You Are
{character.name}, {character.race} {character.char_class}. Personality: {personality}

## Party
{party_lines}

## Situation{' (in combat)' if in_combat else ''}
{self.build_context(character, player_action, timing, targeted, dm_narration)}"""

        try:
            text = await generate_text(
                self.client,
                self.model_id,
                prompt,
                COMPANION_IDENTITY,
                temperature=0.9,
                limiter=self.limiter,
                max_retries=self.max_retries,
                initial_delay=self.initial_delay,
                label=f"companion.{character.id}",
            )
        except Exception as e:
            logger.error(f"Companion reaction failed for {character.name}: {e}", exc_info=True)
            return None

        action = self._parse_action(text)
        if not action:
            logger.debug(f"{character.name} stays silent ({timing})")
            return None
        logger.info(f"{character.name} reacts {timing}: {action[:50]}...")
        return CompanionReaction(character_id=character.id, character_name=character.name, action=action, timing=timing)

    @staticmethod
    def _parse_action(text: str) -> str:
        text = strip_json_fences(text)
        if not text:
            return ""
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # Plain prose is taken as the reaction itself.
            return text.strip()
        if isinstance(data, dict):
            return str(data.get("action") or "").strip()
        return ""
