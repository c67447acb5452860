"""
NarrativeTurnManager — runs one exploration-mode action through the pipeline.

Builds the compiled graph once, feeds it the session and the interpreted
action, then writes the turn's messages back into the session history in
the order the players see them: companions before, engine messages, DM
narration, companions after.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.combat import CombatInitiationResult
from models.session import ChatMessage, GameSession
from engine.combat_triggers import InteractionOutcome, StealthCheck
from pipeline.graph import build_turn_pipeline

logger = logging.getLogger("NarrativeTurnManager")


class NarrativeTurnResult(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)
    narration: str = ""
    combat_initiation: Optional[CombatInitiationResult] = None
    location_id: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = False

    @property
    def combat_started(self) -> bool:
        return self.combat_initiation is not None and self.combat_initiation.should_start_combat


class NarrativeTurnManager:
    """Owns the compiled exploration pipeline for one game."""

    def __init__(self, deps: Dict[str, Any]):
        self.deps = deps
        self.pipeline = build_turn_pipeline(deps)

    async def process_turn(
        self,
        session: GameSession,
        player_action: str,
        interpreted_action: Dict[str, Any],
        stealth_result: Optional[StealthCheck] = None,
        interaction_result: Optional[InteractionOutcome] = None,
    ) -> NarrativeTurnResult:
        logger.info(f"Turn {session.turn_number + 1}: {player_action[:80]} ({interpreted_action.get('action_type')})")

        initial_state = {
            "player_action": player_action,
            "interpreted_action": interpreted_action,
            "session": session,
            "stealth_result": stealth_result,
            "interaction_result": interaction_result,
        }
        try:
            state = await self.pipeline.ainvoke(initial_state)
        except Exception as e:
            logger.error(f"Exploration pipeline failed: {e}", exc_info=True)
            return NarrativeTurnResult(error=str(e), location_id=session.current_location_id)

        session.turn_number += 1
        turn_messages: List[ChatMessage] = [ChatMessage(sender="Player", content=player_action, turn=session.turn_number)]
        for reaction in state.get("companion_before") or []:
            turn_messages.append(ChatMessage(sender=reaction.character_name, content=reaction.action, turn=session.turn_number))
        for line in state.get("system_messages") or []:
            turn_messages.append(ChatMessage(sender="DM", content=line, turn=session.turn_number))
        if state.get("narration"):
            turn_messages.append(ChatMessage(sender="DM", content=state["narration"], turn=session.turn_number))
        for reaction in state.get("companion_after") or []:
            turn_messages.append(ChatMessage(sender=reaction.character_name, content=reaction.action, turn=session.turn_number))
        session.messages.extend(turn_messages)

        return NarrativeTurnResult(
            messages=turn_messages,
            narration=state.get("narration", ""),
            combat_initiation=state.get("combat_initiation"),
            location_id=session.current_location_id,
            error=state.get("error"),
            retryable=state.get("retryable", False),
        )
