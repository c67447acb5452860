"""
Tactician agents — the decision-makers for AI-controlled combatants.

EnemyTacticianAgent plays hostile NPCs and monsters.
CompanionTacticianAgent plays AI-controlled party members (it may heal).

Both return a validated TacticianDecision. A null, empty, unparseable or
badly-shaped reply is an expected outcome, not an error: the agent logs it
and returns a "does nothing this turn" decision.
"""

import json
import logging
from typing import Optional

from pydantic import ValidationError

from models.tactician import TacticianDecision, TacticianInput
from agents.gemini_call import generate_text, strip_json_fences

logger = logging.getLogger('Tactician')


ENEMY_IDENTITY = """You are the tactical brain of hostile NPCs and monsters in a D&D 5e combat.
Your ONLY job is to decide the action of ONE combatant on its turn.

Analyze the battlefield (who is the biggest threat, who is most wounded) and choose the most
logical action: attack, special ability, spell, or even fleeing.

You MUST output ONLY a valid JSON object:
{
  "actionDescription": "Short narration of the action. No dice results.",
  "targetId": "id of the target from the party list, or null",
  "diceRolls": [
    {"roller": "<combatant name>", "rollNotation": "1d20+4", "description": "Attack roll", "attackType": "attack_roll"},
    {"roller": "<combatant name>", "rollNotation": "1d6+2", "description": "Damage roll", "attackType": "attack_roll"}
  ]
}

Rules:
- attackType is one of attack_roll, saving_throw, other.
- attack_roll actions carry EXACTLY two rolls: the attack roll first, then the damage roll.
- saving_throw actions carry EXACTLY one roll: the damage/effect roll (the target saves, you don't roll to hit).
- Do not roll dice, do not decide hit or miss, do not narrate anyone else's turn.
"""

COMPANION_IDENTITY = """You control an AI companion in the player's party during a D&D 5e combat.
Act loyally and in character. Protect wounded allies; heal if an ally is badly wounded and you
have a healing spell or item available.

You MUST output ONLY a valid JSON object:
{
  "actionDescription": "Short narration of the action. No dice results.",
  "targetId": "id of the target (enemy id for attacks, ally id for healing), or null",
  "diceRolls": [
    {"roller": "<your name>", "rollNotation": "1d20+5", "description": "Attack roll", "attackType": "attack_roll"},
    {"roller": "<your name>", "rollNotation": "1d8+3", "description": "Damage roll", "attackType": "attack_roll"}
  ]
}

Rules:
- attackType is one of attack_roll, saving_throw, healing, other.
- attack_roll actions carry EXACTLY two rolls (attack, then damage).
- saving_throw and healing actions carry EXACTLY one roll.
- Only use spells from availableSpells and items from inventory.
"""


class _TacticianAgent:
    identity = ENEMY_IDENTITY
    label = "tactician"
    allow_healing = True

    def __init__(self, client, model_id: str = "gemini-2.0-flash", limiter=None,
                 max_retries: int = 3, initial_delay: float = 1.0):
        self.client = client
        self.model_id = model_id
        self.limiter = limiter
        self.max_retries = max_retries
        self.initial_delay = initial_delay

    def build_prompt(self, tactician_input: TacticianInput) -> str:
        payload = tactician_input.model_dump(by_alias=True)
        return f"""## Battlefield
{json.dumps(payload, ensure_ascii=False, indent=2)}

It is **{tactician_input.active_combatant}**'s turn (id: {tactician_input.active_combatant_id}).
Decide this combatant's action ONLY. Output JSON only."""

    def parse_decision(self, text: str, tactician_input: TacticianInput) -> TacticianDecision:
        """Validate a raw model reply into a decision, or fall back to doing nothing."""
        text = strip_json_fences(text)
        if not text or text.lower() == "null":
            logger.warning(f"[{self.label}] empty decision for {tactician_input.active_combatant}")
            return self._default_decision(tactician_input)
        try:
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError("decision is not a JSON object")
            if not self.allow_healing:
                for roll in data.get("diceRolls") or []:
                    if isinstance(roll, dict) and str(roll.get("attackType", "")).lower() == "healing":
                        roll["attackType"] = "other"
            decision = TacticianDecision.model_validate(data)
        except json.JSONDecodeError as e:
            logger.warning(f"[{self.label}] JSON parse error for {tactician_input.active_combatant}: {e}")
            return self._default_decision(tactician_input)
        except (ValidationError, ValueError) as e:
            logger.warning(f"[{self.label}] invalid decision for {tactician_input.active_combatant}: {e}")
            return self._default_decision(tactician_input)

        for roll in decision.dice_rolls:
            if not roll.roller:
                roll.roller = tactician_input.active_combatant
        return decision

    async def decide(self, tactician_input: TacticianInput) -> TacticianDecision:
        """Ask the model for one combatant's action. Never raises."""
        logger.info(f"[{self.label}] deciding for {tactician_input.active_combatant}")
        if not self.client:
            return self._default_decision(tactician_input)
        try:
            text = await generate_text(
                self.client,
                self.model_id,
                self.build_prompt(tactician_input),
                self.identity,
                temperature=0.6,
                limiter=self.limiter,
                max_retries=self.max_retries,
                initial_delay=self.initial_delay,
                label=self.label,
            )
        except Exception as e:
            logger.error(f"[{self.label}] call failed for {tactician_input.active_combatant}: {e}", exc_info=True)
            return self._default_decision(tactician_input)
        return self.parse_decision(text, tactician_input)

    @staticmethod
    def _default_decision(tactician_input: Optional[TacticianInput]) -> TacticianDecision:
        name = tactician_input.active_combatant if tactician_input else "The combatant"
        return TacticianDecision(action_description=f"{name} hesitates and does nothing this turn.")


class EnemyTacticianAgent(_TacticianAgent):
    """Decides the turn of a hostile NPC or monster."""

    identity = ENEMY_IDENTITY
    label = "enemy_tactician"
    allow_healing = False


class CompanionTacticianAgent(_TacticianAgent):
    """Decides the turn of an AI-controlled party member."""

    identity = COMPANION_IDENTITY
    label = "companion_tactician"
    allow_healing = True
