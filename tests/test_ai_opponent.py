import pytest

from srd35.combat.ai_opponent import OpponentAI
from srd35.combat.models.action import (
    Charge,
    FullAttack,
    FullDefense,
    MeleeAttack,
    Move,
    RangedAttack,
)
from srd35.combat.models.combatant import Weapon
from srd35.combat.spatial import Position

SHORTBOW = Weapon(name="shortbow", damage="1d6", critical_multiplier=3, ranged=True, two_handed=True)


def _choose(encounter, combatant_id, rules=None):
    return OpponentAI(rules).choose_actions(encounter.snapshot(), combatant_id)


def test_attacks_adjacent_foe(make_fighter, make_goblin, make_encounter):
    encounter = make_encounter(make_fighter(), make_goblin())
    assert _choose(encounter, "fighter") == [MeleeAttack(target_id="goblin")]


def test_full_attack_with_iteratives(make_fighter, make_goblin, make_encounter):
    encounter = make_encounter(make_fighter(base_attack_bonus=6), make_goblin())
    assert _choose(encounter, "fighter") == [FullAttack(target_id="goblin")]


def test_stands_up_then_attacks(make_fighter, make_goblin, make_encounter, registry):
    fighter = make_fighter(base_attack_bonus=6)
    registry.apply(fighter, "prone")
    encounter = make_encounter(fighter, make_goblin())
    assert _choose(encounter, "fighter") == [Move(stand_up=True), MeleeAttack(target_id="goblin")]


def test_defensive_personality_turtles_when_hurt(make_fighter, make_goblin, make_encounter):
    encounter = make_encounter(make_fighter(hp=10, ai_personality="defensive"), make_goblin())
    assert _choose(encounter, "fighter") == [FullDefense()]


def test_aggressive_never_turtles(make_fighter, make_goblin, make_encounter):
    encounter = make_encounter(make_fighter(hp=1), make_goblin())
    assert _choose(encounter, "fighter") == [MeleeAttack(target_id="goblin")]


def test_ranged_weapon(make_fighter, make_goblin, make_encounter):
    encounter = make_encounter(make_fighter(weapon=SHORTBOW), make_goblin(position=Position(8, 3)))
    assert _choose(encounter, "fighter") == [RangedAttack(target_id="goblin")]


def test_charges_when_possible(make_fighter, make_goblin, make_encounter):
    encounter = make_encounter(make_fighter(), make_goblin(position=Position(4, 0)))
    assert _choose(encounter, "fighter") == [Charge(target_id="goblin")]


def test_advances_when_too_far_to_charge(make_fighter, make_goblin, make_encounter):
    encounter = make_encounter(make_fighter(), make_goblin(position=Position(20, 0)))
    assert _choose(encounter, "fighter") == [Move(destination=Position(6, 0))]


def test_cowardly_moves_in_instead_of_charging(make_fighter, make_goblin, make_encounter):
    encounter = make_encounter(make_fighter(), make_goblin(position=Position(4, 0), ai_personality="cowardly"))
    assert _choose(encounter, "goblin") == [
        Move(destination=Position(1, 0)),
        MeleeAttack(target_id="fighter"),
    ]


def test_fatigued_cannot_charge(make_fighter, make_goblin, make_encounter, registry):
    fighter = make_fighter()
    registry.apply(fighter, "fatigued")
    encounter = make_encounter(fighter, make_goblin(position=Position(4, 0)))
    assert _choose(encounter, "fighter") == [
        Move(destination=Position(3, 0)),
        MeleeAttack(target_id="goblin"),
    ]


@pytest.mark.parametrize("obstacle", [{"x": 3, "y": 0}, [3, 0], Position(3, 0)], ids=["dict", "pair", "position"])
def test_advance_skips_blocked_squares(make_fighter, make_goblin, make_encounter, registry, obstacle):
    fighter = make_fighter()
    registry.apply(fighter, "fatigued")
    encounter = make_encounter(fighter, make_goblin(position=Position(4, 0)), environment={"obstacles": [obstacle]})
    assert encounter.snapshot().obstacle_squares() == [Position(3, 0)]
    assert _choose(encounter, "fighter") == [Move(destination=Position(2, 0))]


def test_nearest_target_by_default(make_fighter, make_goblin, make_encounter):
    encounter = make_encounter(
        make_fighter(weapon=SHORTBOW),
        make_goblin(position=Position(9, 0)),
        make_goblin(id="goblin_2", position=Position(0, 5)),
    )
    assert _choose(encounter, "fighter") == [RangedAttack(target_id="goblin_2")]


def test_weakest_target_when_preferred(make_fighter, make_goblin, make_encounter):
    encounter = make_encounter(
        make_fighter(weapon=SHORTBOW, ai_personality="cowardly"),
        make_goblin(position=Position(9, 0), hp=3),
        make_goblin(id="goblin_2", position=Position(0, 5)),
    )
    assert _choose(encounter, "fighter") == [RangedAttack(target_id="goblin")]


def test_ignores_defeated_foes(make_fighter, make_goblin, make_encounter):
    encounter = make_encounter(
        make_fighter(),
        make_goblin(hp=0, position=Position(0, 1)),
        make_goblin(id="goblin_2", position=Position(4, 0)),
    )
    assert _choose(encounter, "fighter") == [Charge(target_id="goblin_2")]


def test_nothing_to_do(make_fighter, make_wizard, make_encounter):
    encounter = make_encounter(make_fighter(), make_wizard())
    assert _choose(encounter, "fighter") == []
    assert _choose(encounter, "nobody") == []
