import pytest

from srd35.combat.combat_engine import CombatEngine
from srd35.combat.dice import SequenceDiceRoller
from srd35.combat.errors import CombatValidationError
from srd35.combat.models.action import ActionType, MeleeAttack, Move, ReadyAction, ReadyTrigger
from srd35.combat.models.combatant import Faction, TemporaryModifier
from srd35.combat.models.encounter import EncounterStatus
from srd35.combat.spatial import Position


class _ScriptedSource:
    """Hands out pre-planned action lists, one per turn, per combatant."""

    def __init__(self, scripts=None):
        self.scripts = {key: list(value) for key, value in (scripts or {}).items()}
        self.snapshots = []

    def choose_actions(self, snapshot, combatant_id):
        self.snapshots.append((combatant_id, snapshot))
        turns = self.scripts.get(combatant_id)
        return turns.pop(0) if turns else []


def _engine(repository, faces, scripts=None):
    source = _ScriptedSource(scripts)
    engine = CombatEngine(repository=repository, dice=SequenceDiceRoller(faces), action_source=source)
    return engine, source


def _types(encounter):
    return [event.event_type for event in encounter.event_log]


class TestInitializeCombat:
    def test_initiative_order_and_log(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [5, 15])
        encounter = engine.initialize_combat([make_fighter()], [make_goblin()], encounter_id="enc_1")

        assert [c.id for c in encounter.combatants] == ["goblin", "fighter"]
        assert [c.initiative for c in encounter.combatants] == [16, 5]
        assert encounter.status == EncounterStatus.ACTIVE
        assert encounter.current_round == 1
        start = encounter.event_log[0]
        assert start.event_type == "combat_start"
        assert start.payload["order"] == [
            {"id": "goblin", "initiative": 16},
            {"id": "fighter", "initiative": 5},
        ]
        assert engine.get_encounter("enc_1") is encounter

    def test_ties_keep_input_order(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [10, 9])
        encounter = engine.initialize_combat([make_fighter()], [make_goblin()])
        assert [c.id for c in encounter.combatants] == ["fighter", "goblin"]
        assert encounter.combatants[0].initiative == encounter.combatants[1].initiative

    def test_improved_initiative(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [3, 5])
        encounter = engine.initialize_combat([make_fighter(feats={"improved_initiative"})], [make_goblin()])
        assert encounter.get_combatant("fighter").initiative == 7

    def test_inputs_are_copied(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [15, 5])
        fighter = make_fighter()
        encounter = engine.initialize_combat([fighter], [make_goblin()])
        assert encounter.get_combatant("fighter") is not fighter
        assert fighter.initiative == 0

    def test_side_sets_faction(self, repository, make_goblin, make_fighter):
        engine, _ = _engine(repository, [15, 5])
        turncoat = make_goblin(id="turncoat", position=Position(0, 3))
        encounter = engine.initialize_combat([turncoat], [make_fighter(id="brute", position=Position(4, 4))])
        assert encounter.get_combatant("turncoat").faction == Faction.PC
        assert encounter.get_combatant("brute").faction == Faction.NPC

    def test_default_positions(self, repository, make_fighter, make_wizard, make_goblin):
        engine, _ = _engine(repository, [1, 2, 3])
        encounter = engine.initialize_combat(
            [make_fighter(position=None), make_wizard(position=None)], [make_goblin(position=None)]
        )
        positions = {c.id: c.position for c in encounter.combatants}
        assert positions == {
            "fighter": Position(0, 0),
            "wizard": Position(0, 1),
            "goblin": Position(1, 0),
        }

    def test_spec_dicts(self, repository, make_fighter):
        engine, _ = _engine(repository, [15, 5])
        encounter = engine.initialize_combat(
            [make_fighter()],
            [{"name": "Orc", "race": "orc", "classes": [{"name": "fighter"}], "max_hp": 6, "weapon": "greataxe"}],
        )
        orc = encounter.get_combatant("npc_1")
        assert orc.faction == Faction.NPC
        assert orc.base_attack_bonus == 1
        assert orc.weapon.name.lower() == "greataxe"

    @pytest.mark.parametrize("party, enemies", [([], ["goblin"]), (["fighter"], [])])
    def test_needs_both_sides(self, repository, make_fighter, make_goblin, party, enemies):
        engine, _ = _engine(repository, [])
        builders = {"fighter": make_fighter, "goblin": make_goblin}
        with pytest.raises(CombatValidationError):
            engine.initialize_combat([builders[n]() for n in party], [builders[n]() for n in enemies])

    def test_duplicate_ids(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [])
        with pytest.raises(CombatValidationError):
            engine.initialize_combat([make_fighter(id="twin")], [make_goblin(id="twin")])

    def test_duplicate_encounter_id(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [15, 5, 15, 5])
        engine.initialize_combat([make_fighter()], [make_goblin()], encounter_id="enc_1")
        with pytest.raises(CombatValidationError):
            engine.initialize_combat([make_fighter()], [make_goblin()], encounter_id="enc_1")

    def test_unsupported_input(self, repository, make_fighter):
        engine, _ = _engine(repository, [])
        with pytest.raises(CombatValidationError):
            engine.initialize_combat([make_fighter()], ["goblin"])

    def test_already_decided(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [15, 5])
        encounter = engine.initialize_combat([make_fighter()], [make_goblin(hp=0)])
        assert encounter.status == EncounterStatus.VICTORY
        assert _types(encounter) == ["combat_start", "combat_end"]


class TestTurns:
    def test_victory(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [15, 5, 12, 5], {"fighter": [[MeleeAttack("goblin")]]})
        encounter = engine.initialize_combat([make_fighter()], [make_goblin(hp=5)])

        engine.process_round(encounter)

        assert encounter.status == EncounterStatus.VICTORY
        assert _types(encounter) == ["combat_start", "turn_start", "melee_attack", "combat_end"]
        assert encounter.event_log[-1].payload == {"status": "victory", "round": 1}

    def test_defeat(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [5, 15, 12, 4], {"goblin": [[MeleeAttack("fighter")]]})
        encounter = engine.initialize_combat([make_fighter(hp=1)], [make_goblin()])
        engine.process_round(encounter)
        assert encounter.status == EncounterStatus.DEFEAT
        assert encounter.get_combatant("fighter").hp == -2
        assert _types(encounter).count("combat_end") == 1

    def test_round_advances(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [15, 5])
        encounter = engine.initialize_combat([make_fighter()], [make_goblin(position=Position(5, 5))])
        engine.process_round(encounter)
        assert encounter.current_round == 2
        assert encounter.current_turn_index == 0
        assert _types(encounter) == ["combat_start", "turn_start", "turn_start", "round_end"]

    def test_source_sees_snapshot(self, repository, make_fighter, make_goblin):
        engine, source = _engine(repository, [15, 5])
        encounter = engine.initialize_combat([make_fighter()], [make_goblin()])
        engine.process_round(encounter)
        combatant_id, snapshot = source.snapshots[0]
        assert combatant_id == "fighter"
        assert snapshot.get_combatant("fighter") is not encounter.get_combatant("fighter")
        assert snapshot.round == 1

    def test_economy_resets_each_turn(self, repository, make_fighter, make_goblin):
        scripts = {"fighter": [[MeleeAttack("goblin")], [MeleeAttack("goblin")]]}
        engine, _ = _engine(repository, [15, 5, 2, 2], scripts)
        encounter = engine.initialize_combat([make_fighter()], [make_goblin()])
        engine.process_round(encounter)
        engine.process_round(encounter)
        assert "action_rejected" not in _types(encounter)
        assert _types(encounter).count("melee_attack") == 2

    def test_defeated_combatant_skipped(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [15, 5, 4])
        encounter = engine.initialize_combat(
            [make_fighter()],
            [make_goblin(position=Position(5, 5)), make_goblin(id="goblin_2", hp=0, position=Position(6, 6))],
        )
        engine.process_round(encounter)
        skipped = encounter.events_of_type("turn_skipped")
        assert [(e.actor_id, e.payload["reason"]) for e in skipped] == [("goblin_2", "defeated")]

    def test_stunned_combatant_loses_turn(self, repository, make_fighter, make_goblin, registry):
        goblin = make_goblin(position=Position(5, 5))
        registry.apply(goblin, "stunned", duration=1)
        engine, source = _engine(repository, [15, 5])
        encounter = engine.initialize_combat([make_fighter()], [goblin])

        engine.process_round(encounter)

        goblin_events = [e.event_type for e in encounter.event_log if e.actor_id == "goblin"]
        assert goblin_events == ["turn_skipped", "conditions_expired"]
        assert [cid for cid, _ in source.snapshots] == ["fighter"]
        assert not encounter.get_combatant("goblin").has_condition("stunned")

    def test_sleeping_combatant_wakes_when_duration_runs_out(
        self, repository, make_fighter, make_goblin, registry
    ):
        sleeper = make_goblin(position=Position(5, 5))
        registry.apply(sleeper, "unconscious", duration=1)
        engine, source = _engine(repository, [15, 5, 4])
        encounter = engine.initialize_combat(
            [make_fighter()], [sleeper, make_goblin(id="goblin_2", position=Position(6, 6))]
        )

        engine.process_round(encounter)

        goblin = encounter.get_combatant("goblin")
        assert not goblin.has_condition("unconscious")
        goblin_events = [e.event_type for e in encounter.event_log if e.actor_id == "goblin"]
        assert goblin_events == ["turn_skipped", "conditions_expired"]

        engine.process_round(encounter)
        assert [cid for cid, _ in source.snapshots].count("goblin") == 1

    def test_temporary_modifiers_expire(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [15, 5])
        encounter = engine.initialize_combat([make_fighter()], [make_goblin(position=Position(5, 5))])
        fighter = encounter.get_combatant("fighter")
        fighter.temporary_modifiers.append(TemporaryModifier("full_defense", ac=4))
        engine.take_turn(encounter, fighter)
        assert fighter.temporary_modifiers == []
        expired = encounter.events_of_type("effects_expired")[0]
        assert expired.payload == {"expired": ["full_defense"]}

    def test_readied_action_fires_mid_turn(self, repository, make_fighter, make_goblin):
        scripts = {
            "fighter": [[ReadyAction(ReadyTrigger(ActionType.MOVE), MeleeAttack("goblin"))]],
            "goblin": [[Move(destination=Position(1, 0)), MeleeAttack("fighter")]],
        }
        engine, _ = _engine(repository, [15, 5, 12, 5], scripts)
        encounter = engine.initialize_combat([make_fighter()], [make_goblin(hp=8, position=Position(3, 0))])

        engine.process_round(encounter)

        assert encounter.status == EncounterStatus.VICTORY
        assert _types(encounter) == [
            "combat_start",
            "turn_start",
            "ready_action",
            "turn_start",
            "move",
            "readied_trigger",
            "melee_attack",
            "combat_end",
        ]

    def test_unused_readied_action_expires(self, repository, make_fighter, make_goblin):
        scripts = {"fighter": [[ReadyAction(ReadyTrigger(ActionType.MOVE), MeleeAttack("goblin"))]]}
        engine, _ = _engine(repository, [15, 5], scripts)
        encounter = engine.initialize_combat([make_fighter()], [make_goblin(position=Position(5, 5))])
        engine.process_round(encounter)
        engine.process_round(encounter)
        expired = encounter.events_of_type("effects_expired")
        assert expired[0].payload == {"expired": ["readied melee_attack"]}
        assert encounter.get_combatant("fighter").readied is None

    def test_take_turn_rejects_outsider(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [15, 5])
        encounter = engine.initialize_combat([make_fighter()], [make_goblin()])
        with pytest.raises(CombatValidationError):
            engine.take_turn(encounter, make_fighter())

    def test_finished_encounter_rejects_rounds(self, repository, make_fighter, make_goblin):
        engine, _ = _engine(repository, [15, 5])
        encounter = engine.initialize_combat([make_fighter()], [make_goblin(hp=0)])
        with pytest.raises(CombatValidationError):
            engine.process_round(encounter)


def test_run_until_complete_respects_round_limit(repository, make_fighter, make_goblin):
    engine, _ = _engine(repository, [15, 5])
    encounter = engine.initialize_combat([make_fighter()], [make_goblin(position=Position(5, 5))])
    assert engine.run_until_complete(encounter, max_rounds=3) == EncounterStatus.ACTIVE
    assert encounter.current_round == 4


def test_run_until_complete_to_victory(repository, make_fighter, make_goblin):
    scripts = {"fighter": [[MeleeAttack("goblin")], [MeleeAttack("goblin")]]}
    engine, _ = _engine(repository, [15, 5, 2, 12, 5], scripts)
    encounter = engine.initialize_combat([make_fighter()], [make_goblin(hp=5)])
    assert engine.run_until_complete(encounter) == EncounterStatus.VICTORY
    assert encounter.current_round == 2


def test_ai_driven_combat_finishes(repository, make_fighter, make_goblin):
    engine = CombatEngine(repository=repository, dice=SequenceDiceRoller([15, 5] + [7] * 20))
    encounter = engine.initialize_combat([make_fighter()], [make_goblin()])
    assert engine.run_until_complete(encounter, max_rounds=20) == EncounterStatus.VICTORY
    assert encounter.current_round == 2


def test_summary_and_end_combat(repository, make_fighter, make_goblin):
    engine, _ = _engine(repository, [15, 5])
    engine.initialize_combat([make_fighter()], [make_goblin()], encounter_id="enc_1")

    summary = engine.get_combat_summary("enc_1")
    assert summary["status"] == "active"
    assert [c["id"] for c in summary["combatants"]] == ["fighter", "goblin"]

    assert engine.end_combat("enc_1") is not None
    assert engine.end_combat("enc_1") is None
    with pytest.raises(CombatValidationError):
        engine.get_combat_summary("enc_1")
