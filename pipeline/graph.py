"""
Exploration Turn Pipeline — Compiled LangGraph graph.

One non-combat player action flows through:

    prepare → doors → movement → companions_before → exploration → triggers
        ├─ combat → (END if combat started, else narration)
        └─ narration → companions_after → END

Usage:
    pipeline = build_turn_pipeline(deps)
    result = await pipeline.ainvoke(initial_state)
"""

import logging
from functools import partial
from typing import Dict, Any

from langgraph.graph import StateGraph, END

from pipeline.state import TurnState
from pipeline.nodes.prepare_node import prepare_node
from pipeline.nodes.door_node import door_node
from pipeline.nodes.movement_node import movement_node
from pipeline.nodes.companion_node import companions_before_node, companions_after_node
from pipeline.nodes.exploration_node import exploration_node
from pipeline.nodes.trigger_node import trigger_node
from pipeline.nodes.combat_node import combat_node
from pipeline.nodes.narration_node import narration_node

logger = logging.getLogger("pipeline.graph")


def _route_after_triggers(state: dict) -> str:
    """Combat preempts narration when a trigger fired."""
    trigger = state.get("trigger")
    if trigger is not None and trigger.should_start_combat:
        return "combat"
    return "narration"


def _route_after_combat(state: dict) -> str:
    """Hand over to the combat orchestrator, or narrate if nobody is left to fight."""
    initiation = state.get("combat_initiation")
    if initiation is not None and initiation.should_start_combat:
        return "end"
    return "narration"


def build_turn_pipeline(deps: Dict[str, Any]):
    """Build and compile the exploration turn pipeline.

    Args:
        deps: Dict of collaborators. Expected keys:
            adventure, world, navigation, initiation_service, narrator,
            companion_reactor (optional)

    Returns:
        A compiled LangGraph Pregel object (call .ainvoke(state)).
    """
    _doors = partial(door_node, adventure=deps["adventure"], navigation=deps["navigation"])
    _movement = partial(movement_node, adventure=deps["adventure"], navigation=deps["navigation"])
    _before = partial(companions_before_node, companion_reactor=deps.get("companion_reactor"))
    _explore = partial(exploration_node, adventure=deps["adventure"], world=deps["world"])
    _triggers = partial(trigger_node, adventure=deps["adventure"], world=deps["world"])
    _combat = partial(combat_node, initiation_service=deps["initiation_service"], world=deps["world"])
    _narrate = partial(narration_node, adventure=deps["adventure"], narrator=deps["narrator"])
    _after = partial(companions_after_node, companion_reactor=deps.get("companion_reactor"))

    graph = StateGraph(TurnState)

    graph.add_node("prepare", prepare_node)
    graph.add_node("doors", _doors)
    graph.add_node("movement", _movement)
    graph.add_node("companions_before", _before)
    graph.add_node("exploration", _explore)
    graph.add_node("triggers", _triggers)
    graph.add_node("combat", _combat)
    graph.add_node("narration", _narrate)
    graph.add_node("companions_after", _after)

    graph.set_entry_point("prepare")

    # Linear edges: prepare → doors → movement → companions_before → exploration → triggers
    graph.add_edge("prepare", "doors")
    graph.add_edge("doors", "movement")
    graph.add_edge("movement", "companions_before")
    graph.add_edge("companions_before", "exploration")
    graph.add_edge("exploration", "triggers")

    graph.add_conditional_edges(
        "triggers",
        _route_after_triggers,
        {
            "combat": "combat",
            "narration": "narration",
        },
    )
    graph.add_conditional_edges(
        "combat",
        _route_after_combat,
        {
            "end": END,
            "narration": "narration",
        },
    )

    graph.add_edge("narration", "companions_after")
    graph.add_edge("companions_after", END)

    compiled = graph.compile()
    logger.info("Exploration turn pipeline compiled successfully.")
    return compiled
