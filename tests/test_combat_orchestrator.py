"""
Tests for engine/combat_orchestrator.py and engine/action_executor.py.

Combat is driven step by step the way a caller would: start_combat(),
advance() while ACTION_RESOLVED, submit_player_action() when a player is up.
Tacticians are AsyncMocks returning canned TacticianDecisions.
"""

import asyncio
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from engine.action_executor import ActionExecutor
from engine.combat_initiation import CombatInitiationRequest, CombatInitiationService
from engine.combat_orchestrator import CombatOrchestrator
from engine.combat_triggers import evaluate_exploration
from engine.errors import CombatStateError
from engine.world_state import WorldStateManager
from models.combat import CombatInitiationResult, CombatPhase, CombatState, Combatant, PlayerCombatAction
from models.enemies import Enemy
from models.locations import Hazard
from models.tactician import DiceRollRequest, TacticianDecision


def initiation(party, enemies, reason="proximity", side="none"):
    return CombatInitiationResult(
        should_start_combat=True,
        combatant_ids=[p.id for p in party] + [e.instance_id for e in enemies],
        surprise_side=side,
        reason=reason,
        prepared_enemies=enemies,
        combat_location_id="lair",
    )


def tactician(decision=None, side_effect=None):
    agent = MagicMock()
    agent.decide = AsyncMock(return_value=decision, side_effect=side_effect)
    return agent


def attack_decision(target_id, attack=15, damage=5):
    return TacticianDecision(
        action_description="The goblin slashes.",
        target_id=target_id,
        dice_rolls=[
            DiceRollRequest(roll_notation="1d20+4", attack_type="attack_roll", result=attack),
            DiceRollRequest(roll_notation="1d6+2", attack_type="attack_roll", result=damage),
        ],
    )


async def run_until_player(orchestrator, result, limit=20):
    for _ in range(limit):
        if result.awaiting_player or result.combat_ended:
            return result
        result = await orchestrator.advance()
    raise AssertionError("combat never reached a player turn")  # pragma: no cover


class TestEndToEnd:
    def test_hero_kills_goblin(self, hero, goblin):
        """Hero (20 HP) hits a 10 HP goblin for 12: goblin dead, combat over."""
        orchestrator = CombatOrchestrator(enemy_tactician=tactician(None), rng=random.Random(5))

        async def run():
            result = await orchestrator.start_combat(initiation([hero], [goblin]), [hero])
            result = await run_until_player(orchestrator, result)
            assert result.awaiting_player is True
            assert result.active_combatant_id == "hero"

            result = orchestrator.submit_player_action(
                PlayerCombatAction(target_id="goblin-1", attack_result=18, damage_result=12)
            )
            assert result.success is True
            attack_roll, damage_roll = result.dice_rolls
            assert attack_roll.attack_hit is True
            assert attack_roll.target_ac == 12
            assert damage_roll.damage_dealt == 12

            assert goblin.hp.current == 0
            assert goblin.status == "dead"
            assert result.combat_ended is True
            assert result.winner == "party"
            assert orchestrator.state.in_combat is False
            assert orchestrator.state.phase == CombatPhase.COMBAT_END

        asyncio.run(run())

    def test_ambush_surprises_party(self, adventure, hero):
        lair = adventure.get_location("lair")
        lair.entities_present = ["orc", "orc"]
        lair.hazards.append(Hazard(id="ambush-1", type="ambush"))
        world = WorldStateManager()

        trigger = evaluate_exploration(lair, [], [])
        assert (trigger.should_start_combat, trigger.reason, trigger.surprise_side) == (True, "ambush", "enemy")

        init = CombatInitiationService(world, adventure).initiate(
            CombatInitiationRequest(trigger_result=trigger, party=[hero], location_id="lair")
        )
        assert [e.disposition for e in init.prepared_enemies] == ["hostile", "hostile"]

        orchestrator = CombatOrchestrator(enemy_tactician=tactician(None), rng=random.Random(2))

        async def run():
            result = await orchestrator.start_combat(init, [hero])
            order = orchestrator.state.initiative_order
            assert {c.id for c in order} == {"hero", "orc-1", "orc-2"}
            assert not any(c.is_surprised for c in order if c.type == "npc")

            messages = list(result.messages)
            for _ in range(5):
                if result.awaiting_player:
                    break
                result = await orchestrator.advance()
                messages.extend(result.messages)
            assert "Hero is surprised and loses their turn." in messages
            assert result.awaiting_player is True
            assert orchestrator.state.round == 2

        asyncio.run(run())


class TestTurnFlow:
    def test_enemy_attack_knocks_hero_unconscious(self, hero, goblin):
        hero.hp.current = 4
        decision = attack_decision("hero", attack=17, damage=6)
        orchestrator = CombatOrchestrator(enemy_tactician=tactician(decision))

        async def run():
            init = initiation([hero], [goblin])
            result = await orchestrator.start_combat(init, [hero])
            while not result.combat_ended and not result.awaiting_player:
                result = await orchestrator.advance()
            return result

        goblin.ability_modifiers = {"dexterity": 30}
        result = asyncio.run(run())
        assert hero.hp.current == 0
        assert hero.status == "unconscious"
        assert result.combat_ended is True
        assert result.winner == "enemies"

    def test_tactician_failure_becomes_noop(self, hero, goblin):
        goblin.ability_modifiers = {"dexterity": 30}
        orchestrator = CombatOrchestrator(enemy_tactician=tactician(side_effect=RuntimeError("boom")))

        async def run():
            return await orchestrator.start_combat(initiation([hero], [goblin]), [hero])

        result = asyncio.run(run())
        assert result.success is True
        assert result.phase == CombatPhase.ACTION_RESOLVED
        assert "Goblin 1 does nothing this turn." in result.messages
        assert hero.hp.current == 20
        assert result.has_more_ai_turns is False

    def test_round_counter_and_has_more_ai_turns(self, hero, companion, goblin):
        goblin.ability_modifiers = {"dexterity": 30}
        companion.ability_modifiers = {"dexterity": 20}
        orchestrator = CombatOrchestrator(
            enemy_tactician=tactician(None),
            companion_tactician=tactician(None),
            rng=random.Random(9),
        )

        async def run():
            result = await orchestrator.start_combat(initiation([hero, companion], [goblin]), [hero, companion])
            assert result.active_combatant_id == "goblin-1"
            assert result.has_more_ai_turns is True
            result = await orchestrator.advance()
            assert result.active_combatant_id == "lyra"
            assert result.has_more_ai_turns is False
            result = await orchestrator.advance()
            assert result.awaiting_player is True
            assert orchestrator.state.round == 1

        asyncio.run(run())

    def test_companion_heals_ally(self, hero, companion, goblin):
        hero.hp.current = 5
        companion.ability_modifiers = {"dexterity": 30}
        heal = TacticianDecision(
            action_description="Lyra casts Cure Wounds.",
            target_id="hero",
            dice_rolls=[DiceRollRequest(roll_notation="1d8+3", attack_type="healing", result=9)],
        )
        orchestrator = CombatOrchestrator(enemy_tactician=tactician(None), companion_tactician=tactician(heal))

        async def run():
            return await orchestrator.start_combat(initiation([hero, companion], [goblin]), [hero, companion])

        result = asyncio.run(run())
        assert result.active_combatant_id == "lyra"
        assert hero.hp.current == 14
        assert result.dice_rolls[0].healing_amount == 9

    def test_unconscious_combatant_skipped(self, hero, companion, goblin):
        companion.hp.current = 0
        companion.ability_modifiers = {"dexterity": 30}
        orchestrator = CombatOrchestrator(enemy_tactician=tactician(None))

        async def run():
            return await orchestrator.start_combat(initiation([hero, companion], [goblin]), [hero, companion])

        result = asyncio.run(run())
        assert "Lyra is unconscious and cannot act." in result.messages
        assert result.phase == CombatPhase.ACTION_RESOLVED


class TestPlayerActions:
    def start(self, orchestrator, party, enemies):
        async def run():
            result = await orchestrator.start_combat(initiation(party, enemies), party)
            return await run_until_player(orchestrator, result)
        return asyncio.run(run())

    def test_miss_leaves_hp(self, hero, goblin):
        orchestrator = CombatOrchestrator(enemy_tactician=tactician(None))
        self.start(orchestrator, [hero], [goblin])
        result = orchestrator.submit_player_action(
            PlayerCombatAction(target_id="goblin-1", attack_result=8, damage_result=12)
        )
        assert result.dice_rolls[0].attack_hit is False
        assert len(result.dice_rolls) == 1
        assert goblin.hp.current == 10
        assert result.phase == CombatPhase.ACTION_RESOLVED

    def test_target_by_display_name(self, hero, goblin):
        orchestrator = CombatOrchestrator(enemy_tactician=tactician(None))
        self.start(orchestrator, [hero], [goblin])
        result = orchestrator.submit_player_action(
            PlayerCombatAction(target_id="Goblin 1", attack_result=15, damage_result=3)
        )
        assert result.success is True
        assert goblin.hp.current == 7

    def test_ambiguous_target(self, hero, goblin):
        other = Enemy(id="goblin", unique_id="goblin-2", name="Goblin", hp={"current": 10, "max": 10})
        orchestrator = CombatOrchestrator(enemy_tactician=tactician(None))
        self.start(orchestrator, [hero], [goblin, other])
        result = orchestrator.submit_player_action(PlayerCombatAction(target_id="goblin"))
        assert result.success is False
        assert result.error == "AMBIGUOUS_TARGET"
        assert result.details["matches"] == ["Goblin 1", "Goblin 2"]
        assert orchestrator.state.phase == CombatPhase.WAITING_FOR_ACTION

    def test_unknown_target(self, hero, goblin):
        orchestrator = CombatOrchestrator(enemy_tactician=tactician(None))
        self.start(orchestrator, [hero], [goblin])
        result = orchestrator.submit_player_action(PlayerCombatAction(target_id="dragon"))
        assert result.error == "TARGET_NOT_FOUND"

    def test_submit_twice_is_rejected(self, hero, goblin):
        goblin.hp.current = 50
        goblin.hp.max = 50
        orchestrator = CombatOrchestrator(enemy_tactician=tactician(None))
        self.start(orchestrator, [hero], [goblin])
        action = PlayerCombatAction(target_id="goblin-1", attack_result=15, damage_result=3)
        assert orchestrator.submit_player_action(action).success is True
        second = orchestrator.submit_player_action(action)
        assert second.error == "NOT_WAITING_FOR_ACTION"
        assert goblin.hp.current == 47

    def test_not_in_combat(self):
        orchestrator = CombatOrchestrator()
        assert orchestrator.submit_player_action(PlayerCombatAction()).error == "NOT_IN_COMBAT"
        assert asyncio.run(orchestrator.advance()).error == "NOT_IN_COMBAT"

    def test_advance_while_waiting(self, hero, goblin):
        orchestrator = CombatOrchestrator(enemy_tactician=tactician(None))
        self.start(orchestrator, [hero], [goblin])
        assert asyncio.run(orchestrator.advance()).error == "NOT_RESOLVED"

    def test_start_without_request(self, hero):
        result = asyncio.run(CombatOrchestrator().start_combat(CombatInitiationResult(), [hero]))
        assert result.error == "COMBAT_NOT_STARTED"

    def test_bad_turn_index_raises(self, hero):
        orchestrator = CombatOrchestrator()
        orchestrator.state = CombatState(
            in_combat=True,
            initiative_order=[Combatant(id="hero", character_name="Hero", type="player", controlled_by="Player")],
            turn_index=4,
        )
        with pytest.raises(CombatStateError):
            orchestrator._active()


class TestActionExecutor:
    def state(self, hero, goblin):
        return CombatState(in_combat=True, party=[hero], enemies=[goblin])

    def test_critical_doubles_dice(self, hero, goblin):
        class Rolls:
            values = [20, 3, 4]

            def randint(self, low, high):
                return self.values.pop(0)

        executor = ActionExecutor(Rolls())
        decision = TacticianDecision(
            target_id="goblin-1",
            dice_rolls=[
                DiceRollRequest(roll_notation="1d20+2", attack_type="attack_roll"),
                DiceRollRequest(roll_notation="1d6+1", attack_type="attack_roll"),
            ],
        )
        actor = Combatant(id="hero", character_name="Hero", type="player", controlled_by="Player")
        outcome = executor.execute(actor, decision, self.state(hero, goblin))
        assert outcome.was_critical is True
        assert outcome.dice_rolls[1].roll_notation == "2d6+1"
        assert outcome.damage_dealt == 8
        assert goblin.hp.current == 2

    def test_fumble_always_misses(self, hero, goblin):
        goblin.ac = 1

        class Rolls:
            def randint(self, low, high):
                return 1

        executor = ActionExecutor(Rolls())
        decision = attack_decision("goblin-1")
        decision.dice_rolls[0].result = None
        actor = Combatant(id="hero", character_name="Hero")
        outcome = executor.execute(actor, decision, self.state(hero, goblin))
        assert outcome.attack_hit is False
        assert outcome.dice_rolls[0].outcome == "pifia"

    def test_saving_throw_has_no_attack_roll(self, hero, goblin):
        decision = TacticianDecision(
            target_id="hero",
            dice_rolls=[DiceRollRequest(roll_notation="2d6", attack_type="saving_throw", result=7)],
        )
        actor = Combatant(id="goblin-1", character_name="Goblin 1")
        outcome = ActionExecutor().execute(actor, decision, self.state(hero, goblin))
        assert len(outcome.dice_rolls) == 1
        assert hero.hp.current == 13

    def test_missing_target(self, hero, goblin):
        actor = Combatant(id="goblin-1", character_name="Goblin 1")
        outcome = ActionExecutor().execute(actor, attack_decision("nobody"), self.state(hero, goblin))
        assert outcome.success is False
        assert outcome.error == "TARGET_NOT_FOUND"
        assert hero.hp.current == 20

    def test_bad_roll_shape_rejected(self):
        with pytest.raises(ValueError):
            TacticianDecision(dice_rolls=[DiceRollRequest(roll_notation="1d20", attack_type="attack_roll")])
