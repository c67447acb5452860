"""
Tabletop Adventure Engine — Console Entry Point

Loads and validates an adventure, builds the Gemini-backed agents and runs
a simple read-eval loop. Player lines are interpreted with a small verb
table (natural-language interpretation is left to a richer front end):

    go <place>          move
    attack <target>     attack (add "roll 15 dmg 7" to use physical dice)
    heal <ally>         heal
    talk/ask/say ...    interact
    open/use/touch ...  interact
    /save <path>        write the session snapshot
    /quit               leave

To run: python orchestration/main.py [adventure.json] [--party party.json]
"""

import os
import re
import sys
import json
import asyncio
import logging
import argparse
from typing import Any, Dict

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from google import genai

from orchestration import config
from orchestration.game_master import GameMaster
from agents.narrator import NarratorAgent
from agents.tactician import EnemyTacticianAgent, CompanionTacticianAgent
from agents.companion_reactor import CompanionReactorAgent
from models.characters import Character
from models.session import GameSession
from tools.adventure_validator import AdventureValidationError, load_adventure

logger = logging.getLogger("Main")

VERBS = {
    "move": ("go", "walk", "move", "travel", "enter", "ir", "voy", "camino"),
    "attack": ("attack", "hit", "strike", "shoot", "atacar", "ataco"),
    "heal": ("heal", "curar", "curo"),
    "interact": ("talk", "ask", "say", "open", "use", "touch", "take", "hablar", "abrir", "tocar", "coger"),
}
_ROLL_RE = re.compile(r"\broll\s+(?P<attack>\d+)(?:\s+dmg\s+(?P<damage>\d+))?", re.IGNORECASE)


def interpret_command(text: str) -> Dict[str, Any]:
    """Map a console line to {action_type, target_id, ...}."""
    stripped = text.strip()
    rolls = _ROLL_RE.search(stripped)
    if rolls:
        stripped = (stripped[:rolls.start()] + stripped[rolls.end():]).strip()

    words = stripped.split(maxsplit=1)
    verb = words[0].lower() if words else ""
    rest = words[1] if len(words) > 1 else None
    for prefix in ("to ", "the ", "a la ", "al ", "a "):
        if rest and rest.lower().startswith(prefix):
            rest = rest[len(prefix):]

    interpreted: Dict[str, Any] = {"action_type": "narrate", "target_id": None}
    for action_type, verbs in VERBS.items():
        if verb in verbs:
            interpreted = {"action_type": action_type, "target_id": rest}
            break
    if stripped.startswith("("):
        interpreted["action_type"] = "ooc"

    if rolls:
        interpreted["attack_result"] = int(rolls.group("attack"))
        if rolls.group("damage"):
            interpreted["damage_result"] = int(rolls.group("damage"))
    return interpreted


def load_party(path: str) -> list:
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    return [Character.model_validate(entry) for entry in raw]


def build_game(adventure_path: str, party_path: str = None, session_path: str = None) -> GameMaster:
    adventure, report = load_adventure(adventure_path)
    for warning in report.warnings:
        logger.warning(f"Adventure warning: {warning}")

    if session_path and os.path.exists(session_path):
        with open(session_path, "r", encoding="utf-8") as f:
            session = GameSession.from_snapshot(json.load(f))
        logger.info(f"Resumed session from {session_path}")
    else:
        session = GameSession(party=load_party(party_path) if party_path else [])

    if not config.GEMINI_API_KEY:
        print("Error: GEMINI_API_KEY not found in environment.")
        client = None
    else:
        client = genai.Client(api_key=config.GEMINI_API_KEY)

    retry = {"max_retries": config.RETRY_MAX_ATTEMPTS, "initial_delay": config.RETRY_INITIAL_DELAY}
    return GameMaster(
        adventure,
        session,
        narrator=NarratorAgent(client, model_id=config.MODEL_ID, **retry),
        enemy_tactician=EnemyTacticianAgent(client, model_id=config.MODEL_ID, **retry),
        companion_tactician=CompanionTacticianAgent(client, model_id=config.MODEL_ID, **retry),
        companion_reactor=CompanionReactorAgent(client, model_id=config.MODEL_ID, **retry),
    )


async def run_console(game: GameMaster) -> None:
    print(f"\n=== {game.adventure.title} ===\n(type /quit to leave)\n")
    loop = asyncio.get_running_loop()
    while True:
        line = (await loop.run_in_executor(None, input, "> ")).strip()
        if not line:
            continue
        if line == "/quit":
            break
        if line.startswith("/save"):
            path = line[len("/save"):].strip() or "session.json"
            with open(path, "w", encoding="utf-8") as f:
                json.dump(game.session.to_snapshot(), f, ensure_ascii=False, indent=2)
            print(f"Saved to {path}")
            continue

        response = await game.process_action(line, interpret_command(line))
        for message in response.messages:
            if message.sender != "Player":
                print(f"[{message.sender}] {message.content}\n")
        if response.error:
            hint = " (temporary problem, try again)" if response.retryable else ""
            print(f"!! {response.error}{hint}")
        if response.combat_ended:
            print(f"*** Combat over: {response.winner} win ***")


def main():
    parser = argparse.ArgumentParser(description="Play a tabletop adventure in the console.")
    parser.add_argument("adventure", nargs="?", default=config.ADVENTURE_PATH, help="Adventure JSON file")
    parser.add_argument("--party", help="JSON file with a list of party characters")
    parser.add_argument("--session", help="Session snapshot to resume")
    args = parser.parse_args()

    config.configure_logging()
    try:
        game = build_game(args.adventure, args.party, args.session)
    except AdventureValidationError as e:
        print(f"Adventure failed validation:\n{e}")
        sys.exit(1)
    except FileNotFoundError as e:
        print(f"File not found: {e.filename}")
        sys.exit(1)

    asyncio.run(run_console(game))


if __name__ == "__main__":
    main()
