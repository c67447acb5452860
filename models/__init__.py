"""
Pydantic v2 data models — the contract for all game state.

Adventure data, dynamic world state and collaborator output all pass
through these models. Adventure JSON uses camelCase keys; every model
accepts both camelCase and snake_case field names.
"""

from models.characters import Character, HitPoints, SkillEntry, InventoryItem
from models.enemies import Enemy
from models.locations import Adventure, AdventureEntity, Location, Connection, LegacyExit, Hazard, Interactable
from models.world_state import (
    ConnectionState,
    LocationState,
    WorldState,
    ExplorationRecord,
    ExplorationState,
    WorldTime,
)
from models.combat import (
    CombatPhase,
    Combatant,
    CombatTriggerResult,
    DiceRollRecord,
    CombatInitiationResult,
    CombatState,
    TurnResult,
    PlayerCombatAction,
)
from models.tactician import DiceRollRequest, TacticianDecision, TacticianInput, CombatantView
from models.session import GameSession, ChatMessage

__all__ = [
    "Character",
    "HitPoints",
    "SkillEntry",
    "InventoryItem",
    "Enemy",
    "Adventure",
    "AdventureEntity",
    "Location",
    "Connection",
    "LegacyExit",
    "Hazard",
    "Interactable",
    "ConnectionState",
    "LocationState",
    "WorldState",
    "ExplorationRecord",
    "ExplorationState",
    "WorldTime",
    "CombatPhase",
    "Combatant",
    "CombatTriggerResult",
    "DiceRollRecord",
    "CombatInitiationResult",
    "CombatState",
    "TurnResult",
    "PlayerCombatAction",
    "DiceRollRequest",
    "TacticianDecision",
    "TacticianInput",
    "CombatantView",
    "GameSession",
    "ChatMessage",
]
