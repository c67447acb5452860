"""
NarratorAgent — Dungeon Master prose for exploration and social turns.

Routes each action to one of three narration styles:
  EXPLORATION  moving, looking, searching, handling objects
  INTERACTION  talking to an NPC or answering one
  HYBRID       both at once: the two sub-narrations run concurrently
               and a third call weaves them together

Obvious movement/interaction actions skip the classifier call. A separate
entry point narrates the opening of a combat encounter.
"""

import json
import asyncio
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from agents.gemini_call import generate_text, strip_json_fences
from tools.retry import RetryExhaustedError

logger = logging.getLogger('Narrator')

SOCIAL_MARKERS = ("npc", "say", "ask", "talk", "hablar", "decir", "preguntar")


# Stable identities: passed as system_instruction
ROUTER_IDENTITY = """You classify a tabletop RPG player's action into exactly one category:
EXPLORATION (moving, looking, searching, handling objects),
INTERACTION (speaking or socially engaging with an NPC, including answering an NPC's question),
HYBRID (both at once).
Use the conversation history: if an NPC just spoke to the player, a bare reply is INTERACTION.

Output ONLY a JSON object: {"classification": "EXPLORATION|INTERACTION|HYBRID", "reasoning": "..."}"""

EXPLORATION_IDENTITY = """You are the Dungeon Master narrating exploration.
Describe what the party perceives using ONLY the provided location context.
Never reveal hidden hazards, undiscovered secrets or enemies the context does not list.
Mention visible exits naturally. Keep it to one or two vivid paragraphs of markdown prose.

Output ONLY a JSON object:
{"narration": "...", "updatedCharacterStats": null}
updatedCharacterStats is either null or a JSON STRING of partial character updates."""

INTERACTION_IDENTITY = """You are the Dungeon Master voicing NPCs.
Respond in character for whoever the player addresses, consistent with their attitude and
the conversation history. Keep it to one or two paragraphs of markdown prose.

Output ONLY a JSON object:
{"narration": "...", "updatedCharacterStats": null}"""

SYNTHESIZER_IDENTITY = """You are a master storyteller. Combine an exploration passage and a dialogue
passage into ONE fluid paragraph that weaves both together. Do not paste them one after the other.
Output ONLY the combined prose."""

COMBAT_START_IDENTITY = """You are the Dungeon Master narrating the START of a combat encounter.
Set the scene from the location description, introduce the enemies by their base type
("two goblins", not "Goblin 1 and Goblin 2"), and mention who acts first.
Only describe an ambush or surprise if surpriseSide says so. No attacks or damage yet.
Output ONLY the prose."""


class NarrationRequest(BaseModel):
    player_action: str
    interpreted_action: Dict[str, Any] = Field(default_factory=dict)  # {action_type, target_id}
    location_context: Dict[str, Any] = Field(default_factory=dict)
    exploration_context: Dict[str, Any] = Field(default_factory=dict)
    conversation_history: str = ""
    movement_narration: Optional[str] = None


class NarrationResult(BaseModel):
    narration: str = ""
    classification: str = "EXPLORATION"
    updated_character_stats: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    retryable: bool = False


class NarratorAgent:
    """Narrates non-combat turns and combat openings."""

    def __init__(self, client, model_id: str = "gemini-2.0-flash", limiter=None,
                 max_retries: int = 3, initial_delay: float = 1.0):
        self.client = client
        self.model_id = model_id
        self.limiter = limiter
        self.max_retries = max_retries
        self.initial_delay = initial_delay

    async def _generate(self, identity: str, prompt: str, temperature: float, label: str) -> str:
        return await generate_text(
            self.client,
            self.model_id,
            prompt,
            identity,
            temperature=temperature,
            limiter=self.limiter,
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            label=label,
        )

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    @staticmethod
    def heuristic_route(request: NarrationRequest) -> Optional[str]:
        """EXPLORATION for plain move/interact actions; None means ask the model."""
        action_type = str(request.interpreted_action.get("action_type", "")).lower()
        text = f"{request.player_action} {json.dumps(request.interpreted_action)}".lower()
        looks_social = any(marker in text for marker in SOCIAL_MARKERS)
        if action_type in ("move", "interact") and not looks_social:
            return "EXPLORATION"
        return None

    async def classify(self, request: NarrationRequest) -> str:
        route = self.heuristic_route(request)
        if route:
            logger.info("Skipping router call (obvious exploration)")
            return route

        prompt = f"""## Action
{request.player_action}

## Interpreted
{json.dumps(request.interpreted_action)}

## Conversation History
{request.conversation_history or 'None'}"""
        try:
            text = await self._generate(ROUTER_IDENTITY, prompt, 0.1, "narrator.router")
            classification = str(json.loads(strip_json_fences(text)).get("classification", "")).upper()
        except (json.JSONDecodeError, AttributeError) as e:
            logger.warning(f"Router JSON parse error, defaulting to EXPLORATION: {e}")
            return "EXPLORATION"
        if classification not in ("EXPLORATION", "INTERACTION", "HYBRID"):
            logger.warning(f"Router returned unknown classification '{classification}'")
            return "EXPLORATION"
        return classification

    # ------------------------------------------------------------------
    # Narration
    # ------------------------------------------------------------------

    def _scene_prompt(self, request: NarrationRequest) -> str:
        movement = f"\n## Travel\n{request.movement_narration}\n" if request.movement_narration else ""
        return f"""## Location
{json.dumps(request.location_context, ensure_ascii=False, indent=2)}

## What The Party Perceives
{json.dumps(request.exploration_context, ensure_ascii=False, indent=2)}
{movement}
## Recent Conversation
{request.conversation_history or 'None'}

## Player Action
{request.player_action}
Interpreted: {json.dumps(request.interpreted_action)}"""

    async def _expert(self, identity: str, request: NarrationRequest, label: str) -> NarrationResult:
        text = await self._generate(identity, self._scene_prompt(request), 0.8, label)
        return self.parse_narration(text)

    @staticmethod
    def parse_narration(text: str) -> NarrationResult:
        """Parse an expert reply. Plain prose is accepted as the narration itself."""
        try:
            data = json.loads(strip_json_fences(text))
        except json.JSONDecodeError:
            return NarrationResult(narration=text.strip())
        if not isinstance(data, dict):
            return NarrationResult(narration=text.strip())

        stats = None
        raw_stats = data.get("updatedCharacterStats") or data.get("updated_character_stats")
        if isinstance(raw_stats, str) and raw_stats.strip():
            try:
                parsed = json.loads(raw_stats)
                stats = parsed if isinstance(parsed, dict) else None
                if stats is None:
                    logger.warning("Discarding character stat update that is not a JSON object")
            except json.JSONDecodeError as e:
                logger.warning(f"Discarding invalid character stat update JSON: {e}")
        elif isinstance(raw_stats, dict):
            stats = raw_stats
        return NarrationResult(narration=str(data.get("narration", "")).strip(), updated_character_stats=stats)

    async def narrate(self, request: NarrationRequest) -> NarrationResult:
        """Route, narrate and (for hybrid actions) synthesize one turn."""
        if not self.client:
            return self._error_result("Model not connected.")

        try:
            classification = await self.classify(request)
            logger.info(f"Narrating as {classification}: {request.player_action[:80]}")

            if classification == "HYBRID":
                exploration, interaction = await asyncio.gather(
                    self._expert(EXPLORATION_IDENTITY, request, "narrator.exploration"),
                    self._expert(INTERACTION_IDENTITY, request, "narrator.interaction"),
                )
                narration = await self._synthesize(request, exploration.narration, interaction.narration)
                stats = exploration.updated_character_stats or interaction.updated_character_stats
                return NarrationResult(narration=narration, classification=classification,
                                       updated_character_stats=stats)

            identity = INTERACTION_IDENTITY if classification == "INTERACTION" else EXPLORATION_IDENTITY
            result = await self._expert(identity, request, f"narrator.{classification.lower()}")
            result.classification = classification
            return result

        except RetryExhaustedError as e:
            logger.error(f"Narrator gave up after {e.attempts} attempts: {e}")
            result = self._error_result(str(e))
            result.retryable = True
            return result
        except Exception as e:
            logger.error(f"Error in Narrator: {e}", exc_info=True)
            return self._error_result(str(e))

    async def _synthesize(self, request: NarrationRequest, exploration: str, interaction: str) -> str:
        prompt = f"""Exploration: "{exploration}"
Dialogue: "{interaction}"
Original action: "{request.player_action}\""""
        try:
            text = await self._generate(SYNTHESIZER_IDENTITY, prompt, 0.7, "narrator.synthesis")
        except Exception as e:
            logger.error(f"Synthesis failed, joining passages: {e}", exc_info=True)
            text = ""
        if not text:
            return "\n\n".join(part for part in (exploration, interaction) if part)
        return text

    async def narrate_combat_start(self, location_description: str, combat_context: Dict[str, Any],
                                   conversation_history: str = "") -> str:
        """Opening prose for an encounter. Returns "" on any failure."""
        if not self.client:
            return ""
        prompt = f"""## Location
{location_description}

## Combat Context
{json.dumps(combat_context, ensure_ascii=False, indent=2)}

## Recent Conversation
{conversation_history or 'None'}"""
        try:
            return await self._generate(COMBAT_START_IDENTITY, prompt, 0.8, "narrator.combat_start")
        except Exception as e:
            logger.error(f"Combat opening narration failed: {e}", exc_info=True)
            return ""

    @staticmethod
    def _error_result(message: str) -> NarrationResult:
        return NarrationResult(
            narration="The world seems to hold its breath for a moment. (The narrator could not respond.)",
            error=message,
        )
