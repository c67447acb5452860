"""
TurnState — The typed state that flows through every node of the exploration turn.

Each node reads from and writes to this state dict.
LangGraph automatically merges the returned partial state.
"""

from typing import TypedDict, Optional, List, Dict, Any

from models.combat import CombatInitiationResult, CombatTriggerResult
from models.session import GameSession
from engine.combat_triggers import InteractionOutcome, StealthCheck
from engine.exploration import ExplorationContext
from engine.navigation import DoorOpening, MovementResult


class TurnState(TypedDict, total=False):
    """State flowing through the exploration turn pipeline.

    Fields:
        player_action:       Raw text the player typed.
        interpreted_action:  {"action_type": move|interact|attack|narrate|ooc|continue_turn, "target_id": ...}
        session:             The live GameSession (mutated in place by the nodes).
        stealth_result:      Stealth check made this turn, if any.
        interaction_result:  Outcome of a social interaction, if any.
        is_adventure_start:  First action of the adventure (no companion chatter).
        previous_location_id: Where the party stood before this turn.
        door:                Door opened (or refused) by an "open ..." interaction.
        movement:            Navigation result for move actions.
        exploration:         Fog-of-war / perception context for the current location.
        trigger:             Combat trigger decision.
        hide_enemy_names:    An ambush is pending, so the room description must not name enemies.
        combat_initiation:   Initiation result when a trigger fired.
        narration:           DM prose for this turn.
        updated_character_stats: Validated partial character updates from the narrator.
        companion_before:    Companion reactions before the DM narrates.
        companion_after:     Companion reactions after the DM narrates.
        system_messages:     Short engine messages (trigger hooks, movement refusals).
        error:               If set, an error occurred at some node.
        retryable:           The error was a transient model failure; the player may retry.
    """
    player_action: str
    interpreted_action: Dict[str, Any]
    session: GameSession
    stealth_result: Optional[StealthCheck]
    interaction_result: Optional[InteractionOutcome]
    is_adventure_start: bool
    previous_location_id: Optional[str]
    door: Optional[DoorOpening]
    movement: Optional[MovementResult]
    exploration: Optional[ExplorationContext]
    trigger: Optional[CombatTriggerResult]
    hide_enemy_names: bool
    combat_initiation: Optional[CombatInitiationResult]
    narration: str
    updated_character_stats: Optional[Dict[str, Any]]
    companion_before: List[Any]
    companion_after: List[Any]
    system_messages: List[str]
    error: Optional[str]
    retryable: bool
