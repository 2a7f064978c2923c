import pytest

from srd35.combat.damage import (
    apply_damage,
    apply_damage_reduction,
    heal,
    roll_weapon_damage,
    weapon_bypasses,
)
from srd35.combat.dice import SequenceDiceRoller
from srd35.combat.models.combatant import AbilityScores, DamageReduction, Weapon

MUNDANE_SWORD = Weapon(name="longsword", damage="1d8", damage_type="slashing")
MAGIC_SWORD = Weapon(name="+1 longsword", damage="1d8", damage_type="slashing", enhancement=1)
SILVER_DAGGER = Weapon(name="silver dagger", damage="1d4", damage_type="piercing", properties=frozenset({"silver"}))


class TestDamageReduction:
    def test_magic_dr_against_mundane_weapon(self, make_goblin):
        golem = make_goblin(damage_reduction=DamageReduction(5, "magic"))
        assert apply_damage_reduction(golem, 12, MUNDANE_SWORD) == 7

    def test_magic_weapon_bypasses(self, make_goblin):
        golem = make_goblin(damage_reduction=DamageReduction(5, "magic"))
        assert apply_damage_reduction(golem, 12, MAGIC_SWORD) == 12

    def test_dash_is_never_bypassed(self, make_goblin):
        barbarian = make_goblin(damage_reduction=DamageReduction(2, "-"))
        assert apply_damage_reduction(barbarian, 12, MAGIC_SWORD) == 10
        assert apply_damage_reduction(barbarian, 1, MAGIC_SWORD) == 0

    def test_property_and_damage_type(self):
        assert weapon_bypasses(SILVER_DAGGER, DamageReduction(5, "silver"))
        assert weapon_bypasses(MUNDANE_SWORD, DamageReduction(5, "slashing"))
        assert not weapon_bypasses(MUNDANE_SWORD, DamageReduction(5, "bludgeoning"))

    def test_no_dr(self, make_goblin):
        assert apply_damage_reduction(make_goblin(), 9, MUNDANE_SWORD) == 9


class TestRollWeaponDamage:
    def test_normal_hit(self, make_fighter, make_goblin):
        dice = SequenceDiceRoller([5])
        damage = roll_weapon_damage(dice, make_fighter(), make_goblin())
        assert damage.rolls == [5]
        assert damage.bonus == 3
        assert damage.total == 8
        assert dice.remaining == []

    def test_critical_multiplies_dice_only(self, make_fighter, make_goblin):
        dice = SequenceDiceRoller([6, 6])
        damage = roll_weapon_damage(dice, make_fighter(), make_goblin(), is_critical=True)
        assert damage.multiplier == 2
        assert damage.rolls == [6, 6]
        assert damage.base == 12
        assert damage.total == 2 * 6 + 3

    def test_dice_modifier_added_once(self, make_fighter, make_goblin):
        axe = Weapon(name="flaming axe", damage="1d6+2", critical_multiplier=3)
        dice = SequenceDiceRoller([4, 4, 4])
        damage = roll_weapon_damage(dice, make_fighter(weapon=axe), make_goblin(), is_critical=True)
        assert damage.base == 12
        assert damage.total == 12 + 2 + 3

    def test_minimum_one_before_reduction(self, make_fighter, make_goblin):
        weakling = make_fighter(abilities=AbilityScores(strength=3))
        dice = SequenceDiceRoller([1])
        damage = roll_weapon_damage(dice, weakling, make_goblin())
        assert damage.raw == 1
        assert damage.total == 1

    def test_reduction_recorded(self, make_fighter, make_goblin):
        golem = make_goblin(damage_reduction=DamageReduction(5, "magic"))
        damage = roll_weapon_damage(SequenceDiceRoller([8]), make_fighter(), golem)
        assert damage.raw == 11
        assert damage.reduced_by == 5
        assert damage.total == 6


class TestApplyDamage:
    def test_unconscious_between_zero_and_minus_ten(self, make_goblin, registry):
        goblin = make_goblin(hp=10, max_hp=10)
        outcome = apply_damage(goblin, 11, registry)
        assert goblin.hp == -1
        assert outcome.taken == 10
        assert outcome.became_unconscious
        assert goblin.has_condition("unconscious")
        assert not goblin.has_condition("dead")

    def test_dead_at_minus_ten(self, make_goblin, registry):
        goblin = make_goblin(hp=10, max_hp=10)
        outcome = apply_damage(goblin, 21, registry)
        assert goblin.hp <= -10
        assert outcome.became_dead
        assert goblin.has_condition("dead")
        assert not goblin.has_condition("unconscious")

    def test_unconscious_then_dead(self, make_goblin, registry):
        goblin = make_goblin(hp=2, max_hp=10)
        apply_damage(goblin, 4, registry)
        outcome = apply_damage(goblin, 9, registry)
        assert outcome.taken == 0
        assert outcome.became_dead
        assert goblin.condition_names() == ["dead"]

    def test_dead_hp_no_longer_changes(self, make_goblin, registry):
        goblin = make_goblin(hp=1, max_hp=10)
        apply_damage(goblin, 15, registry)
        outcome = apply_damage(goblin, 5, registry)
        assert goblin.hp == -14
        assert outcome.taken == 0
        assert not outcome.became_dead

    def test_exactly_zero_is_unconscious(self, make_goblin, registry):
        goblin = make_goblin(hp=5, max_hp=5)
        apply_damage(goblin, 5, registry)
        assert goblin.hp == 0
        assert goblin.is_defeated()

    def test_zero_damage_is_noop(self, make_goblin, registry):
        goblin = make_goblin()
        assert apply_damage(goblin, 0, registry).taken == 0
        assert goblin.hp == 20


class TestHeal:
    def test_capped_at_max(self, make_goblin, registry):
        goblin = make_goblin(hp=15, max_hp=20)
        assert heal(goblin, 10, registry) == 5
        assert goblin.hp == 20

    def test_revives_unconscious(self, make_goblin, registry):
        goblin = make_goblin(hp=3, max_hp=20)
        apply_damage(goblin, 5, registry)
        assert goblin.has_condition("unconscious")
        heal(goblin, 4, registry)
        assert goblin.hp == 2
        assert not goblin.has_condition("unconscious")

    def test_dead_stay_dead(self, make_goblin, registry):
        goblin = make_goblin(hp=1, max_hp=20)
        apply_damage(goblin, 20, registry)
        assert heal(goblin, 30, registry) == 0
        assert goblin.has_condition("dead")


@pytest.mark.parametrize("amount", [-3, 0])
def test_heal_ignores_non_positive(make_goblin, registry, amount):
    goblin = make_goblin(hp=10)
    assert heal(goblin, amount, registry) == 0
