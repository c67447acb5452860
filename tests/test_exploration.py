"""
Tests for engine/exploration.py — fog of war, perception and the exploration context.
"""

from engine.exploration import (
    best_passive_perception,
    build_exploration_context,
    check_passive_perception,
    perform_active_search,
    update_exploration_state,
    visible_connections,
)
from engine.world_state import WorldStateManager
from models.characters import Character
from models.locations import Hazard
from models.world_state import ExplorationState


def add_trap(location, dc=12, hazard_id="pit"):
    location.hazards.append(Hazard(id=hazard_id, type="trap", detection_dc=dc, description="A loose flagstone."))


class TestFogOfWar:
    def test_entering_marks_visited_and_reveals_neighbours(self, adventure):
        exploration = ExplorationState()
        update_exploration_state(exploration, adventure.get_location("hall"), 480)
        assert exploration.status_of("hall") == "visited"
        assert exploration.status_of("kitchen") == "seen"
        assert exploration.status_of("corridor") == "seen"
        record = exploration.known_locations["hall"]
        assert record.first_visited == 480
        assert record.visit_count == 1

    def test_restricted_neighbour_stays_unknown(self, adventure):
        adventure.get_location("hall").connections[0].visibility = "restricted"
        exploration = ExplorationState()
        update_exploration_state(exploration, adventure.get_location("hall"), 0)
        assert "kitchen" in exploration.known_locations
        assert exploration.status_of("kitchen") == "unknown"

    def test_status_never_lowers(self, adventure):
        exploration = ExplorationState()
        update_exploration_state(exploration, adventure.get_location("kitchen"), 0)
        update_exploration_state(exploration, adventure.get_location("hall"), 10)
        assert exploration.status_of("kitchen") == "visited"
        assert exploration.known_locations["hall"].first_visited == 10


class TestPerception:
    def test_best_passive_uses_proficiency(self, hero):
        sharp = Character(id="s", name="Sharp", ability_scores={"wisdom": 14},
                          skills=[{"name": "perception", "proficient": True}])
        assert best_passive_perception([hero]) == 11
        assert best_passive_perception([hero, sharp]) == 14

    def test_dead_members_do_not_count(self):
        dead = Character(id="d", name="Dead", ability_scores={"wisdom": 20}, is_dead=True)
        assert best_passive_perception([dead]) == 0

    def test_safe_locations_skip_passive(self, adventure, hero):
        hall = adventure.get_location("hall")
        add_trap(hall, dc=1)
        assert check_passive_perception(hall, [hero], WorldStateManager()) == []

    def test_passive_detects_low_dc(self, adventure, hero):
        corridor = adventure.get_location("corridor")
        add_trap(corridor, dc=11)
        add_trap(corridor, dc=15, hazard_id="darts")
        found = check_passive_perception(corridor, [hero], WorldStateManager())
        assert [h.id for h in found] == ["pit"]

    def test_discovered_hazards_not_reported_again(self, adventure, hero):
        corridor = adventure.get_location("corridor")
        add_trap(corridor, dc=5)
        world = WorldStateManager()
        world.mark_secrets_discovered("corridor", ["pit"])
        assert check_passive_perception(corridor, [hero], world) == []

    def test_active_search(self, adventure):
        corridor = adventure.get_location("corridor")
        add_trap(corridor, dc=15)
        world = WorldStateManager()
        assert perform_active_search(corridor, 14, world) == []
        assert [h.id for h in perform_active_search(corridor, 15, world)] == ["pit"]


class TestVisibleConnections:
    def test_skips_way_in_and_hides_unvisited_titles(self, adventure):
        exploration = ExplorationState()
        lines = visible_connections(
            adventure.get_location("hall"), adventure, WorldStateManager(), exploration,
            came_from_location_id="kitchen",
        )
        assert len(lines) == 1
        assert lines[0].startswith("To north: A cold")
        assert "Dark Corridor" not in lines[0]
        assert lines[0].endswith("(Through open archway/passage)")

    def test_visited_title_and_corpses(self, adventure, goblin):
        exploration = ExplorationState()
        exploration.record_for("lair").promote("visited")
        world = WorldStateManager()
        world.register_visit("lair", 1)
        goblin.status = "dead"
        goblin.hp.current = 0
        world.update_enemies("lair", [goblin])

        lines = visible_connections(adventure.get_location("corridor"), adventure, world, exploration)
        lair_line = next(line for line in lines if "Goblin Lair" in line)
        assert lair_line.endswith("[VISIBLE CORPSES: Goblin]")

    def test_restricted_needs_open_door(self, adventure):
        hall = adventure.get_location("hall")
        hall.connections[0].visibility = "restricted"
        exploration = ExplorationState()
        closed = visible_connections(hall, adventure, WorldStateManager(), exploration)
        opened = visible_connections(hall, adventure, WorldStateManager(), exploration, open_doors={"hall:east": True})
        assert len(closed) == 1
        assert len(opened) == 2
        assert any(line.endswith("(Through OPEN door)") for line in opened)


class TestBuildExplorationContext:
    def test_context_reports_previous_status(self, adventure, hero):
        world = WorldStateManager()
        exploration = ExplorationState()
        lair = adventure.get_location("lair")
        context = build_exploration_context(lair, adventure, [hero], world, exploration, 0)
        assert context.visit_state == "unknown"
        assert context.mode == "dungeon"
        assert [e.instance_id for e in context.present_entities] == ["goblin-1"]

        again = build_exploration_context(lair, adventure, [hero], world, exploration, 5)
        assert again.visit_state == "visited"

    def test_detected_hazards_recorded(self, adventure, hero):
        world = WorldStateManager()
        corridor = adventure.get_location("corridor")
        add_trap(corridor, dc=10)
        context = build_exploration_context(corridor, adventure, [hero], world, ExplorationState(), 0)
        assert [h.id for h in context.detected_hazards] == ["pit"]
        assert world.get_location_state("corridor").discovered_secrets == ["pit"]

    def test_dead_entities_listed_separately(self, adventure, hero, goblin):
        world = WorldStateManager()
        world.register_visit("lair", 1)
        goblin.status = "dead"
        goblin.hp.current = 0
        world.update_enemies("lair", [goblin])
        context = build_exploration_context(adventure.get_location("lair"), adventure, [hero], world,
                                            ExplorationState(), 0)
        assert context.present_entities == []
        assert context.dead_entities == ["Goblin"]
