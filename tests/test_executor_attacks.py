import pytest

from srd35.combat.errors import CombatValidationError, UnsupportedActionError
from srd35.combat.models.action import (
    ActionType,
    AttackOptions,
    Charge,
    FullAttack,
    MeleeAttack,
    RangedAttack,
)
from srd35.combat.models.combatant import AbilityScores, Faction, Weapon
from srd35.combat.models.encounter import EncounterStatus
from srd35.combat.spatial import Position

SHORTBOW = Weapon(name="shortbow", damage="1d6", critical_multiplier=3, ranged=True, two_handed=True)


class _Unknown:
    action_type = "dance"


def test_every_action_type_has_a_handler(make_executor):
    executor, _ = make_executor([])
    assert set(executor.handled_types) == set(ActionType)


def test_unsupported_action(make_executor, make_fighter, make_goblin, make_encounter):
    executor, _ = make_executor([])
    fighter = make_fighter()
    encounter = make_encounter(fighter, make_goblin())
    with pytest.raises(UnsupportedActionError):
        executor.execute(encounter, fighter, _Unknown())
    assert encounter.event_log == []


class TestFighterScenario:
    """BAB +5, Str 16, longsword 1d8 19-20/x2 against AC 15."""

    def test_confirmed_critical(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, dice = make_executor([19, 16, 6, 6])
        fighter, goblin = make_fighter(), make_goblin()
        encounter = make_encounter(fighter, goblin)

        result = executor.execute(encounter, fighter, MeleeAttack(target_id="goblin"))

        assert result.hit and result.critical
        assert result.attack_roll.hit_roll.total == 27
        assert result.attack_roll.target_ac == 15
        assert result.damage.rolls == [6, 6]
        assert result.damage.total == 2 * 6 + 3
        assert goblin.hp == 20 - 15
        assert dice.remaining == []

    def test_natural_one_always_misses(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, dice = make_executor([1])
        fighter = make_fighter(base_attack_bonus=20)
        goblin = make_goblin()
        result = executor.execute(make_encounter(fighter, goblin), fighter, MeleeAttack(target_id="goblin"))
        assert not result.hit
        assert result.natural_one
        assert result.attack_roll.confirm_roll is None
        assert goblin.hp == 20
        assert dice.remaining == []

    def test_natural_twenty_hits_any_ac(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([20, 1, 3])
        fighter = make_fighter()
        goblin = make_goblin(abilities=AbilityScores(dexterity=40))
        result = executor.execute(make_encounter(fighter, goblin), fighter, MeleeAttack(target_id="goblin"))
        assert result.hit and result.natural_twenty
        assert result.attack_roll.threatened
        assert not result.critical
        assert result.damage.total == 6

    def test_unconfirmed_threat_is_normal_hit(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([19, 2, 7])
        fighter, goblin = make_fighter(), make_goblin()
        result = executor.execute(make_encounter(fighter, goblin), fighter, MeleeAttack(target_id="goblin"))
        assert result.hit and not result.critical
        assert result.damage.multiplier == 1
        assert result.damage.total == 10

    def test_plain_miss(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([6])
        fighter, goblin = make_fighter(), make_goblin()
        result = executor.execute(make_encounter(fighter, goblin), fighter, MeleeAttack(target_id="goblin"))
        assert not result.hit
        assert not result.rejected


class TestMeleeAttack:
    def test_logged_once(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([12, 5])
        fighter, goblin = make_fighter(), make_goblin()
        encounter = make_encounter(fighter, goblin)
        result = executor.execute(encounter, fighter, MeleeAttack(target_id="goblin"))
        assert [event.event_type for event in encounter.event_log] == ["melee_attack"]
        assert encounter.event_log[0].result is result
        assert result.damage_taken == 8

    def test_out_of_reach_is_rejected(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        fighter, goblin = make_fighter(), make_goblin(position=Position(3, 0))
        encounter = make_encounter(fighter, goblin)
        result = executor.execute(encounter, fighter, MeleeAttack(target_id="goblin"))
        assert result.rejected
        assert "reach" in result.reason
        assert encounter.event_log[-1].event_type == "action_rejected"
        assert fighter.economy.standard

    def test_second_standard_action_is_rejected(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([6])
        fighter, goblin = make_fighter(), make_goblin()
        encounter = make_encounter(fighter, goblin)
        executor.execute(encounter, fighter, MeleeAttack(target_id="goblin"))
        second = executor.execute(encounter, fighter, MeleeAttack(target_id="goblin"))
        assert second.rejected
        assert "standard" in second.reason

    def test_unknown_target(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        fighter = make_fighter()
        encounter = make_encounter(fighter, make_goblin())
        with pytest.raises(CombatValidationError):
            executor.execute(encounter, fighter, MeleeAttack(target_id="dragon"))
        assert encounter.event_log == []

    def test_cannot_target_self(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        fighter = make_fighter()
        with pytest.raises(CombatValidationError):
            executor.execute(make_encounter(fighter, make_goblin()), fighter, MeleeAttack(target_id="fighter"))

    def test_defeated_target_is_rejected(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        fighter, goblin = make_fighter(), make_goblin(hp=0)
        result = executor.execute(make_encounter(fighter, goblin), fighter, MeleeAttack(target_id="goblin"))
        assert result.rejected

    def test_actor_outside_encounter(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        stranger = make_fighter(id="stranger")
        with pytest.raises(CombatValidationError):
            executor.execute(make_encounter(make_fighter(), make_goblin()), stranger, MeleeAttack(target_id="goblin"))

    def test_inactive_encounter(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        fighter = make_fighter()
        encounter = make_encounter(fighter, make_goblin())
        encounter.status = EncounterStatus.VICTORY
        with pytest.raises(CombatValidationError):
            executor.execute(encounter, fighter, MeleeAttack(target_id="goblin"))

    def test_power_attack_above_bab(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        fighter = make_fighter()
        with pytest.raises(CombatValidationError):
            executor.execute(
                make_encounter(fighter, make_goblin()),
                fighter,
                MeleeAttack(target_id="goblin", options=AttackOptions(power_attack=6)),
            )

    def test_fighting_defensively_grants_ac(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([15, 5])
        fighter, goblin = make_fighter(), make_goblin()
        result = executor.execute(
            make_encounter(fighter, goblin),
            fighter,
            MeleeAttack(target_id="goblin", options=AttackOptions(fighting_defensively=True)),
        )
        assert result.attack_roll.bonus_terms["fighting_defensively"] == -4
        assert fighter.temporary_ac() == 2

    def test_kill_marks_dead(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([12, 8])
        fighter, goblin = make_fighter(), make_goblin(hp=1)
        result = executor.execute(make_encounter(fighter, goblin), fighter, MeleeAttack(target_id="goblin"))
        assert goblin.hp == -10
        assert result.damage_taken == 1
        assert result.conditions_applied == ["dead"]


class TestRangedAttack:
    def test_requires_ranged_weapon(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        fighter = make_fighter()
        result = executor.execute(make_encounter(fighter, make_goblin()), fighter, RangedAttack(target_id="goblin"))
        assert result.rejected

    def test_prone_target_harder_to_shoot(self, make_executor, make_fighter, make_goblin, make_encounter, registry):
        executor, _ = make_executor([10])
        archer = make_fighter(weapon=SHORTBOW)
        goblin = make_goblin(position=Position(6, 0))
        registry.apply(goblin, "prone")
        result = executor.execute(make_encounter(archer, goblin), archer, RangedAttack(target_id="goblin"))
        assert result.attack_roll.target_ac == 19
        assert result.attack_roll.hit_roll.total == 15
        assert not result.hit


class TestFullAttack:
    def test_iterative_attacks_logged_individually(
        self, make_executor, make_fighter, make_goblin, make_encounter
    ):
        executor, dice = make_executor([10, 3, 10])
        fighter = make_fighter(base_attack_bonus=6)
        goblin = make_goblin()
        encounter = make_encounter(fighter, goblin)

        summary = executor.execute(encounter, fighter, FullAttack(target_id="goblin"))

        assert len(summary.sub_results) == 2
        first, second = summary.sub_results
        assert first.attack_roll.hit_roll.total == 19 and first.hit
        assert second.attack_roll.hit_roll.total == 14 and not second.hit
        assert second.attack_roll.bonus_terms["iterative"] == -5
        assert [r.details["attack_index"] for r in summary.sub_results] == [0, 1]
        assert goblin.hp == 14
        assert [e.event_type for e in encounter.event_log] == ["full_attack", "full_attack"]
        assert not fighter.economy.standard and not fighter.economy.move
        assert dice.remaining == []

    def test_three_attacks_step_down_by_five(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([1, 1, 1])
        fighter = make_fighter(base_attack_bonus=11)
        summary = executor.execute(
            make_encounter(fighter, make_goblin()), fighter, FullAttack(target_id="goblin")
        )
        totals = [r.attack_roll.hit_roll.modifier for r in summary.sub_results]
        assert [t - totals[0] for t in totals] == [0, -5, -10]

    def test_stops_when_target_falls(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([10, 3])
        fighter = make_fighter(base_attack_bonus=6)
        goblin = make_goblin(hp=5)
        encounter = make_encounter(fighter, goblin)
        summary = executor.execute(encounter, fighter, FullAttack(target_id="goblin"))
        assert goblin.is_defeated()
        assert summary.details == {"attacks": 1, "planned": 2, "skipped": 1}
        assert len(encounter.event_log) == 1

    def test_per_attack_targets(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([10, 3, 12, 4])
        fighter = make_fighter(base_attack_bonus=6)
        first, second = make_goblin(), make_goblin(id="goblin_2", position=Position(0, 1))
        summary = executor.execute(
            make_encounter(fighter, first, second),
            fighter,
            FullAttack(target_id="goblin", target_ids=("goblin", "goblin_2")),
        )
        assert [r.target_id for r in summary.sub_results] == ["goblin", "goblin_2"]
        assert first.hp == 14
        assert second.hp == 13

    def test_mismatched_target_count(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        fighter = make_fighter(base_attack_bonus=6)
        with pytest.raises(CombatValidationError):
            executor.execute(
                make_encounter(fighter, make_goblin()),
                fighter,
                FullAttack(target_id="goblin", attack_count=3, target_ids=("goblin",)),
            )

    def test_needs_full_round(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        fighter = make_fighter(base_attack_bonus=6)
        fighter.economy.move = False
        result = executor.execute(make_encounter(fighter, make_goblin()), fighter, FullAttack(target_id="goblin"))
        assert result.rejected


class TestCharge:
    def test_charge_moves_and_attacks(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([7, 4])
        fighter, goblin = make_fighter(), make_goblin(position=Position(4, 0))
        encounter = make_encounter(fighter, goblin)

        result = executor.execute(encounter, fighter, Charge(target_id="goblin"))

        assert result.hit
        assert result.attack_roll.bonus_terms["charge"] == 2
        assert result.attack_roll.hit_roll.total == 15
        assert fighter.position == Position(3, 0)
        assert result.details["moved_feet"] == 15
        assert fighter.temporary_ac() == -2
        assert goblin.hp == 13

    @pytest.mark.parametrize("x", [1, 2])
    def test_needs_ten_feet(self, make_executor, make_fighter, make_goblin, make_encounter, x):
        executor, _ = make_executor([])
        fighter = make_fighter()
        result = executor.execute(
            make_encounter(fighter, make_goblin(position=Position(x, 0))), fighter, Charge(target_id="goblin")
        )
        assert result.rejected
        assert fighter.position == Position(0, 0)

    def test_blocked_path(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        fighter = make_fighter()
        encounter = make_encounter(
            fighter, make_goblin(position=Position(4, 0)), environment={"obstacles": [{"x": 2, "y": 0}]}
        )
        result = executor.execute(encounter, fighter, Charge(target_id="goblin"))
        assert result.rejected
        assert "path" in result.reason

    def test_beyond_double_speed(self, make_executor, make_fighter, make_goblin, make_encounter):
        executor, _ = make_executor([])
        fighter = make_fighter()
        result = executor.execute(
            make_encounter(fighter, make_goblin(position=Position(14, 0))), fighter, Charge(target_id="goblin")
        )
        assert result.rejected

    def test_fatigued_cannot_charge(self, make_executor, make_fighter, make_goblin, make_encounter, registry):
        executor, _ = make_executor([])
        fighter = make_fighter()
        registry.apply(fighter, "fatigued")
        result = executor.execute(
            make_encounter(fighter, make_goblin(position=Position(4, 0))), fighter, Charge(target_id="goblin")
        )
        assert result.rejected


def test_threatens(make_executor, make_fighter, make_goblin, registry):
    executor, _ = make_executor([])
    fighter, goblin = make_fighter(), make_goblin()
    assert executor.threatens(goblin, fighter)
    assert not executor.threatens(make_fighter(id="ally", faction=Faction.PC, position=Position(1, 1)), fighter)
    registry.apply(goblin, "stunned")
    assert not executor.threatens(goblin, fighter)
