"""
Action executor

Dispatches one Action to its handler, enforces the action economy and
appends every ActionResult to the encounter log.
"""
import copy
import logging
from typing import Callable, Dict, List, Optional

from . import calculator
from .conditions import ConditionRegistry
from .damage import apply_damage, heal, roll_weapon_damage
from .dice import DiceRoller
from .errors import (
    CombatError,
    CombatValidationError,
    ExternalFailure,
    RuleViolation,
    UnsupportedActionError,
)
from .maneuvers import ManeuverResolver, maneuver_type
from .models.action import (
    Action,
    ActionResult,
    ActionType,
    AttackOptions,
    AttackRoll,
    CastSpell,
    Charge,
    CombatManeuver,
    DiceRoll,
    FullAttack,
    FullDefense,
    ManeuverType,
    MeleeAttack,
    Move,
    RangedAttack,
    ReadiedAction,
    ReadyAction,
)
from .models.combatant import ActionCost, AttackKind, Combatant, TemporaryModifier
from .models.condition import NEXT_TURN
from .models.encounter import CombatEncounter
from .rules import (
    CHARGE_AC_PENALTY,
    CHARGE_MIN_DISTANCE,
    COMBAT_EXPERTISE_MAX,
    CRITICAL_HIT_ROLL,
    CRITICAL_MISS_ROLL,
    FIGHTING_DEFENSIVELY_AC_BONUS,
    FULL_DEFENSE_AC_BONUS,
    CombatRules,
)
from .spatial import approach_square, distance_feet, path_is_clear, within_reach
from .spells import Spellcaster, concentration_dc, roll_concentration

logger = logging.getLogger(__name__)

ACTION_COSTS: Dict[ActionType, ActionCost] = {
    ActionType.MELEE_ATTACK: ActionCost.STANDARD,
    ActionType.RANGED_ATTACK: ActionCost.STANDARD,
    ActionType.FULL_ATTACK: ActionCost.FULL_ROUND,
    ActionType.CHARGE: ActionCost.FULL_ROUND,
    ActionType.COMBAT_MANEUVER: ActionCost.STANDARD,
    ActionType.MOVE: ActionCost.MOVE,
    ActionType.FULL_DEFENSE: ActionCost.FULL_ROUND,
    ActionType.READY_ACTION: ActionCost.STANDARD,
}


class ActionExecutor:
    """
    Resolves actions against one encounter

    Handlers validate and roll before they mutate; a RuleViolation raised by
    a handler becomes a rejected ActionResult, everything else propagates.
    """

    def __init__(
        self,
        rules: CombatRules,
        dice: DiceRoller,
        registry: Optional[ConditionRegistry] = None,
        spellcaster: Optional[Spellcaster] = None,
        repository=None,
        consume_slot_on_disruption: Optional[bool] = None,
    ):
        self.rules = rules
        self.dice = dice
        self.registry = registry or ConditionRegistry(rules.conditions)
        self.spellcaster = spellcaster
        self.repository = repository
        self.maneuvers = ManeuverResolver(rules, self.registry, dice)
        if consume_slot_on_disruption is None:
            consume_slot_on_disruption = rules.consume_slot_on_disruption
        self.consume_slot_on_disruption = consume_slot_on_disruption

        self._handlers: Dict[ActionType, Callable[..., ActionResult]] = {
            ActionType.MELEE_ATTACK: self._melee_attack,
            ActionType.RANGED_ATTACK: self._ranged_attack,
            ActionType.FULL_ATTACK: self._full_attack,
            ActionType.CAST_SPELL: self._cast_spell,
            ActionType.CHARGE: self._charge,
            ActionType.COMBAT_MANEUVER: self._combat_maneuver,
            ActionType.MOVE: self._move,
            ActionType.FULL_DEFENSE: self._full_defense,
            ActionType.READY_ACTION: self._ready_action,
        }

    @property
    def handled_types(self) -> List[ActionType]:
        return list(self._handlers)

    # ============================================
    # Public interface
    # ============================================

    def execute(
        self,
        encounter: CombatEncounter,
        actor: Combatant,
        action: Action,
        free: bool = False,
    ) -> ActionResult:
        """
        Execute one action

        Args:
            encounter: the active encounter
            actor: the acting combatant (must belong to the encounter)
            action: one of the Action variants
            free: skip the action economy cost (readied actions)

        Returns:
            ActionResult: for full_attack a summary whose sub_results are
            the individual attacks
        """
        handler = self._handlers.get(getattr(action, "action_type", None))
        if handler is None:
            raise UnsupportedActionError(f"No handler for action: {action!r}")
        if not encounter.is_active:
            raise CombatValidationError(
                f"Encounter {encounter.encounter_id} is not active ({encounter.status.value})"
            )
        if not encounter.contains(actor):
            raise CombatValidationError(f"{actor.id} is not part of encounter {encounter.encounter_id}")
        if actor.is_defeated():
            raise CombatValidationError(f"{actor.id} is defeated and cannot act")

        try:
            result = handler(encounter, actor, action, free)
        except RuleViolation as violation:
            result = ActionResult(
                action_type=action.action_type,
                actor_id=actor.id,
                target_id=getattr(action, "target_id", None),
                success=False,
                rejected=True,
                reason=violation.reason,
            )
            result.add_message(f"{actor.name}: {action.action_type.value} rejected ({violation.reason})")
            logger.debug("%s rejected: %s", action.action_type.value, violation.reason)

        if result.sub_results:
            for sub_result in result.sub_results:
                encounter.record_result(sub_result)
        else:
            encounter.record_result(result)
        return result

    def action_cost(self, action: Action) -> ActionCost:
        if action.action_type == ActionType.CAST_SPELL:
            return ActionCost(self._spell_record(action.spell_name).casting_time)
        return ACTION_COSTS[action.action_type]

    def trigger_readied(self, encounter: CombatEncounter, event: ActionResult) -> List[ActionResult]:
        """
        Fire readied actions whose trigger matches a resolved action

        Only hostile holders react; each fires at most once, for free.
        """
        if event.rejected:
            return []
        trigger_actor = encounter.get_combatant(event.actor_id)
        if trigger_actor is None:
            return []

        fired = []
        for holder in list(encounter.combatants):
            readied = holder.readied
            if readied is None or holder is trigger_actor:
                continue
            if not holder.is_hostile_to(trigger_actor):
                continue
            if not readied.trigger.matches(event.action_type, trigger_actor.id):
                continue
            if not encounter.is_active:
                break
            if holder.is_defeated() or self.registry.flag(holder, "no_actions"):
                continue
            holder.readied = None
            encounter.add_event(
                holder.id,
                f"{holder.name}'s readied action triggers",
                event_type="readied_trigger",
                payload={"trigger": event.action_type.value, "by": trigger_actor.id},
            )
            fired.append(self.execute(encounter, holder, readied.action, free=True))
        return fired

    def threatens(self, attacker: Combatant, target: Combatant) -> bool:
        """Whether attacker threatens target's square in melee."""
        weapon = attacker.active_weapon
        if weapon.ranged and not weapon.thrown:
            return False
        if attacker.is_defeated() or not attacker.is_hostile_to(target):
            return False
        if self.registry.flag(attacker, "no_actions") or self.registry.flag(attacker, "helpless"):
            return False
        if attacker.position is None or target.position is None:
            return False
        return within_reach(attacker.position, target.position, weapon.reach)

    def threatened_by(self, encounter: CombatEncounter, combatant: Combatant) -> List[Combatant]:
        return [other for other in encounter.combatants if self.threatens(other, combatant)]

    # ============================================
    # Shared helpers
    # ============================================

    def _require_target(
        self, encounter: CombatEncounter, actor: Combatant, target_id: Optional[str]
    ) -> Combatant:
        target = encounter.require_combatant(target_id)
        if target is actor:
            raise CombatValidationError(f"{actor.id} cannot target itself")
        if target.is_defeated():
            raise RuleViolation(f"{target.name} is already defeated")
        return target

    @staticmethod
    def _require_position(combatant: Combatant):
        if combatant.position is None:
            raise CombatValidationError(f"{combatant.id} has no position")
        return combatant.position

    @staticmethod
    def _require_affordable(actor: Combatant, cost: ActionCost, free: bool) -> None:
        if not free and not actor.economy.can_afford(cost):
            raise RuleViolation(f"no {cost.value} action left this turn")

    @staticmethod
    def _spend(actor: Combatant, cost: ActionCost, free: bool) -> None:
        if not free:
            actor.economy.spend(cost)

    def _validate_options(self, actor: Combatant, options: AttackOptions) -> None:
        if options.power_attack < 0 or options.combat_expertise < 0:
            raise CombatValidationError("power_attack and combat_expertise must be >= 0")
        if options.power_attack > max(actor.base_attack_bonus, 0):
            raise CombatValidationError(
                f"power_attack {options.power_attack} exceeds base attack bonus {actor.base_attack_bonus}"
            )
        if options.combat_expertise > min(COMBAT_EXPERTISE_MAX, max(actor.base_attack_bonus, 0)):
            raise CombatValidationError(f"combat_expertise {options.combat_expertise} too high")

    def _apply_defensive_options(self, actor: Combatant, options: AttackOptions) -> None:
        if options.fighting_defensively:
            self._add_modifier(
                actor, TemporaryModifier("fighting_defensively", ac=FIGHTING_DEFENSIVELY_AC_BONUS)
            )
        if options.combat_expertise:
            self._add_modifier(actor, TemporaryModifier("combat_expertise", ac=options.combat_expertise))

    @staticmethod
    def _add_modifier(actor: Combatant, modifier: TemporaryModifier) -> None:
        actor.temporary_modifiers = [
            m for m in actor.temporary_modifiers if m.source != modifier.source
        ]
        actor.temporary_modifiers.append(modifier)

    def _check_melee(self, actor: Combatant, target: Combatant) -> None:
        weapon = actor.active_weapon
        if weapon.ranged and not weapon.thrown:
            raise RuleViolation(f"{weapon.name} cannot be used in melee")
        if not within_reach(self._require_position(actor), self._require_position(target), weapon.reach):
            raise RuleViolation(f"{target.name} is out of reach")

    def _check_ranged(self, actor: Combatant) -> None:
        weapon = actor.active_weapon
        if not (weapon.ranged or weapon.thrown):
            raise RuleViolation(f"{weapon.name} is not a ranged weapon")
        if self.registry.flag(actor, "no_ranged"):
            raise RuleViolation(f"{actor.name} cannot make ranged attacks")

    def _resolve_attack(
        self,
        attacker: Combatant,
        target: Combatant,
        kind: AttackKind,
        options: AttackOptions,
        action_type: ActionType,
        charge: bool = False,
        iterative_index: int = 0,
    ) -> ActionResult:
        """Roll one attack (with critical confirmation) and apply its damage."""
        weapon = attacker.active_weapon
        bonus = calculator.attack_bonus(
            attacker, kind, options, self.rules, charge=charge, iterative_index=iterative_index
        )
        ac = calculator.armor_class(target, kind)

        natural = self.dice.d20()
        hit_roll = DiceRoll("1d20", natural, bonus.total, natural + bonus.total)
        if natural == CRITICAL_MISS_ROLL:
            hit = False
        elif natural == CRITICAL_HIT_ROLL:
            hit = True
        else:
            hit = hit_roll.total >= ac.total

        threatened = hit and natural >= weapon.threat_range
        confirm_roll = None
        critical = False
        if threatened:
            confirm = self.dice.d20()
            confirm_roll = DiceRoll("1d20", confirm, bonus.total, confirm + bonus.total)
            if confirm == CRITICAL_MISS_ROLL:
                critical = False
            elif confirm == CRITICAL_HIT_ROLL:
                critical = True
            else:
                critical = confirm_roll.total >= ac.total

        result = ActionResult(
            action_type=action_type,
            actor_id=attacker.id,
            target_id=target.id,
            success=hit,
            hit=hit,
            critical=critical,
            natural_one=natural == CRITICAL_MISS_ROLL,
            natural_twenty=natural == CRITICAL_HIT_ROLL,
            attack_roll=AttackRoll(
                hit_roll=hit_roll,
                target_ac=ac.total,
                is_hit=hit,
                threatened=threatened,
                confirm_roll=confirm_roll,
                is_critical=critical,
                bonus_terms=dict(bonus.terms),
            ),
        )
        result.details["ac_terms"] = dict(ac.terms)

        if not hit:
            verdict = "automatically misses" if natural == CRITICAL_MISS_ROLL else "misses"
            result.add_message(f"{attacker.name} {verdict} {target.name} ({hit_roll} vs AC {ac.total})")
            return result

        damage = roll_weapon_damage(
            self.dice, attacker, target, weapon, critical, options, self.rules
        )
        outcome = apply_damage(target, damage.total, self.registry)
        result.damage = damage
        result.damage_taken = outcome.taken
        if outcome.became_unconscious:
            result.conditions_applied.append("unconscious")
        if outcome.became_dead:
            result.conditions_applied.append("dead")

        label = "critically hits" if critical else "hits"
        result.add_message(
            f"{attacker.name} {label} {target.name} ({hit_roll} vs AC {ac.total}) "
            f"for {damage.total} {damage.damage_type} damage"
        )
        if outcome.became_dead:
            result.add_message(f"{target.name} is dead")
        elif outcome.became_unconscious:
            result.add_message(f"{target.name} falls unconscious")
        return result

    # ============================================
    # Attacks
    # ============================================

    def _melee_attack(self, encounter, actor, action: MeleeAttack, free: bool) -> ActionResult:
        target = self._require_target(encounter, actor, action.target_id)
        self._validate_options(actor, action.options)
        self._check_melee(actor, target)
        self._require_affordable(actor, ActionCost.STANDARD, free)

        result = self._resolve_attack(actor, target, AttackKind.MELEE, action.options, ActionType.MELEE_ATTACK)
        self._spend(actor, ActionCost.STANDARD, free)
        self._apply_defensive_options(actor, action.options)
        return result

    def _ranged_attack(self, encounter, actor, action: RangedAttack, free: bool) -> ActionResult:
        target = self._require_target(encounter, actor, action.target_id)
        self._validate_options(actor, action.options)
        self._check_ranged(actor)
        self._require_affordable(actor, ActionCost.STANDARD, free)

        result = self._resolve_attack(actor, target, AttackKind.RANGED, action.options, ActionType.RANGED_ATTACK)
        self._spend(actor, ActionCost.STANDARD, free)
        self._apply_defensive_options(actor, action.options)
        return result

    def _full_attack(self, encounter, actor, action: FullAttack, free: bool) -> ActionResult:
        count = action.attack_count or calculator.iterative_attack_count(actor.base_attack_bonus)
        if count < 1:
            raise CombatValidationError(f"attack_count must be >= 1, got {count}")
        target_ids = action.targets_for(count)
        if len(target_ids) != count:
            raise CombatValidationError(f"{len(target_ids)} targets given for {count} attacks")
        self._validate_options(actor, action.options)

        kind = AttackKind.RANGED if action.ranged else AttackKind.MELEE
        targets = []
        for target_id in target_ids:
            target = encounter.require_combatant(target_id)
            if target is actor:
                raise CombatValidationError(f"{actor.id} cannot target itself")
            targets.append(target)
        if all(target.is_defeated() for target in targets):
            raise RuleViolation("every target is already defeated")
        if kind == AttackKind.RANGED:
            self._check_ranged(actor)
        else:
            for target in targets:
                self._check_melee(actor, target)
        self._require_affordable(actor, ActionCost.FULL_ROUND, free)

        sub_results = []
        skipped = 0
        for index, target in enumerate(targets):
            if target.is_defeated():
                skipped += 1
                continue
            sub_result = self._resolve_attack(
                actor, target, kind, action.options, ActionType.FULL_ATTACK, iterative_index=index
            )
            sub_result.details["attack_index"] = index
            sub_results.append(sub_result)
        self._spend(actor, ActionCost.FULL_ROUND, free)
        self._apply_defensive_options(actor, action.options)

        summary = ActionResult(
            action_type=ActionType.FULL_ATTACK,
            actor_id=actor.id,
            target_id=action.target_id,
            success=any(r.hit for r in sub_results),
            hit=any(r.hit for r in sub_results),
            critical=any(r.critical for r in sub_results),
            damage_taken=sum(r.damage_taken for r in sub_results),
            sub_results=sub_results,
            details={"attacks": len(sub_results), "planned": count, "skipped": skipped},
        )
        for sub_result in sub_results:
            summary.conditions_applied.extend(sub_result.conditions_applied)
            summary.messages.extend(sub_result.messages)
        return summary

    def _charge(self, encounter, actor, action: Charge, free: bool) -> ActionResult:
        target = self._require_target(encounter, actor, action.target_id)
        self._validate_options(actor, action.options)
        if self.registry.flag(actor, "no_charge") or self.registry.flag(actor, "no_move"):
            raise RuleViolation(f"{actor.name} cannot charge")
        weapon = actor.active_weapon
        if weapon.ranged and not weapon.thrown:
            raise RuleViolation(f"{weapon.name} cannot be used in melee")

        start = self._require_position(actor)
        goal = self._require_position(target)
        destination = approach_square(start, goal)
        moved = distance_feet(start, destination)
        speed = actor.speed // 2 if self.registry.flag(actor, "half_speed") else actor.speed
        if moved < CHARGE_MIN_DISTANCE:
            raise RuleViolation(f"a charge needs at least {CHARGE_MIN_DISTANCE} ft of movement")
        if moved > 2 * speed:
            raise RuleViolation(f"{target.name} is beyond charge range ({moved} ft)")
        blocked = set(encounter.occupied_squares(exclude=actor))
        blocked.discard(goal)
        blocked.update(encounter.obstacle_squares())
        if not path_is_clear(start, goal, blocked):
            raise RuleViolation(f"no clear path to charge {target.name}")
        self._require_affordable(actor, ActionCost.FULL_ROUND, free)

        actor.position = destination
        result = self._resolve_attack(
            actor, target, AttackKind.MELEE, action.options, ActionType.CHARGE, charge=True
        )
        self._add_modifier(actor, TemporaryModifier("charge", ac=CHARGE_AC_PENALTY))
        self._spend(actor, ActionCost.FULL_ROUND, free)
        self._apply_defensive_options(actor, action.options)
        result.position = destination
        result.details["moved_feet"] = moved
        return result

    # ============================================
    # Spells
    # ============================================

    def _spell_record(self, spell_name: str):
        if self.repository is None:
            raise CombatValidationError("No rules data available for spells")
        record = self.repository.get_spell(spell_name)
        if record is None:
            raise CombatValidationError(f"Unknown spell: {spell_name}")
        return record

    def _cast_spell(self, encounter, actor, action: CastSpell, free: bool) -> ActionResult:
        record = self._spell_record(action.spell_name)
        targets = [encounter.require_combatant(target_id) for target_id in action.target_ids]
        if self.spellcaster is None:
            raise CombatValidationError("No spellcaster configured")
        if self.registry.flag(actor, "no_spells"):
            raise RuleViolation(f"{actor.name} cannot cast spells")
        if actor.spell_slots.get(record.level, 0) < 1:
            raise RuleViolation(f"no level {record.level} spell slot left")
        cost = ActionCost(record.casting_time)
        self._require_affordable(actor, cost, free)

        result = ActionResult(
            action_type=ActionType.CAST_SPELL,
            actor_id=actor.id,
            target_id=action.target_id,
        )
        result.details.update({"spell": record.name, "spell_level": record.level})

        if action.casting_defensively and self.threatened_by(encounter, actor):
            dc = concentration_dc(record.level)
            roll, passed = roll_concentration(self.dice, actor, dc)
            result.details["concentration"] = {"roll": roll.to_dict(), "dc": dc, "success": passed}
            if not passed:
                self._spend(actor, cost, free)
                consumed = self.consume_slot_on_disruption
                if consumed:
                    actor.spell_slots[record.level] -= 1
                result.success = False
                result.reason = "concentration_failed"
                result.details["slot_consumed"] = consumed
                result.add_message(f"{actor.name}'s {record.name} is disrupted ({roll} vs DC {dc})")
                return result

        options = {
            "targets": copy.deepcopy(targets),
            "target_ids": list(action.target_ids),
            "casting_defensively": action.casting_defensively,
            "spell_level": record.level,
        }
        try:
            cast = self.spellcaster.cast_spell(
                copy.deepcopy(actor), record.name, actor.caster_level, options
            )
        except CombatError:
            raise
        except Exception as exc:
            raise ExternalFailure(f"Spellcasting failed for {record.name}: {exc}") from exc

        # Validate everything the collaborator returned before mutating
        affected = []
        for effect in cast.effects:
            affected.append(encounter.require_combatant(effect.target_id))
            if effect.condition:
                self.registry.definition(effect.condition)

        self._spend(actor, cost, free)
        actor.spell_slots[record.level] -= 1
        result.success = cast.success
        result.details["slot_consumed"] = True
        result.details["effects"] = [effect.to_dict() for effect in cast.effects]
        if cast.message:
            result.add_message(cast.message)
        if not cast.success:
            result.reason = "spell_failed"
            return result

        for target, effect in zip(affected, cast.effects):
            if effect.damage:
                outcome = apply_damage(target, effect.damage, self.registry)
                result.damage_taken += outcome.taken
                if outcome.became_unconscious:
                    result.conditions_applied.append("unconscious")
                if outcome.became_dead:
                    result.conditions_applied.append("dead")
                kind = f" {effect.damage_type}" if effect.damage_type else ""
                result.add_message(f"{target.name} takes {effect.damage}{kind} damage")
            if effect.healing:
                healed = heal(target, effect.healing, self.registry)
                if healed:
                    result.add_message(f"{target.name} heals {healed} hp")
            if effect.condition and not target.has_condition("dead"):
                self.registry.apply(target, effect.condition, duration=effect.duration, source=actor.id)
                result.conditions_applied.append(effect.condition)
                result.add_message(f"{target.name} is {effect.condition}")
        return result

    # ============================================
    # Maneuvers
    # ============================================

    def _can_make_attack_of_opportunity(self, threatener: Combatant, provoker: Combatant) -> bool:
        return (
            threatener.attacks_of_opportunity > 0
            and not threatener.has_condition("flat-footed")
            and self.threatens(threatener, provoker)
        )

    def _provoke(
        self, encounter: CombatEncounter, provoker: Combatant, first: Optional[Combatant] = None
    ) -> List[ActionResult]:
        """
        Attacks of opportunity from every foe threatening provoker

        first (the maneuver's defender) swings first, the rest in
        initiative order. Stops once provoker is down.
        """
        threateners = sorted(self.threatened_by(encounter, provoker), key=lambda c: c is not first)
        results = []
        for threatener in threateners:
            if provoker.is_defeated():
                break
            if not self._can_make_attack_of_opportunity(threatener, provoker):
                continue
            threatener.attacks_of_opportunity -= 1
            aoo = self._resolve_attack(
                threatener, provoker, AttackKind.MELEE, AttackOptions(), ActionType.MELEE_ATTACK
            )
            aoo.details["attack_of_opportunity"] = True
            encounter.record_result(aoo)
            results.append(aoo)
        return results

    def _combat_maneuver(self, encounter, actor, action: CombatManeuver, free: bool) -> ActionResult:
        kind = maneuver_type(action.maneuver)
        target = self._require_target(encounter, actor, action.target_id)
        if not within_reach(
            self._require_position(actor), self._require_position(target), actor.active_weapon.reach
        ):
            raise RuleViolation(f"{target.name} is out of reach")
        self.maneuvers.validate(actor, target, kind)
        self._require_affordable(actor, ActionCost.STANDARD, free)

        result = ActionResult(
            action_type=ActionType.COMBAT_MANEUVER,
            actor_id=actor.id,
            target_id=target.id,
        )
        result.details["maneuver"] = kind.value

        aoo_results: List[ActionResult] = []
        if self.maneuvers.provokes_attack_of_opportunity(actor, kind, action.suppress_aoo):
            aoo_results = self._provoke(encounter, actor, first=target)
            if aoo_results:
                result.details["attacks_of_opportunity"] = [r.to_dict() for r in aoo_results]
        self._spend(actor, ActionCost.STANDARD, free)

        if actor.is_defeated():
            result.success = False
            result.reason = "dropped_by_attack_of_opportunity"
            result.add_message(f"{actor.name} is dropped before completing the {kind.value}")
            return result
        if kind == ManeuverType.GRAPPLE and any(
            r.damage is not None and r.damage.total > 0 for r in aoo_results
        ):
            result.success = False
            result.reason = "damaged_by_attack_of_opportunity"
            result.add_message(f"{actor.name}'s grapple fails after taking damage")
            return result

        outcome = self.maneuvers.resolve(encounter, actor, target, kind)
        result.success = outcome.success
        result.hit = outcome.success
        result.conditions_applied.extend(outcome.conditions_applied)
        result.conditions_removed.extend(outcome.conditions_removed)
        result.position = outcome.position
        result.details["outcome"] = outcome.to_dict()
        verdict = "succeeds" if outcome.success else "fails"
        result.add_message(
            f"{actor.name}'s {kind.value} against {target.name} {verdict} "
            f"({outcome.actor_roll.total} vs {outcome.defender_roll.total})"
        )
        return result

    # ============================================
    # Movement, defense, ready
    # ============================================

    def _move(self, encounter, actor, action: Move, free: bool) -> ActionResult:
        if action.stand_up:
            if action.destination is not None:
                raise CombatValidationError("stand_up and destination cannot be combined")
            if not actor.has_condition("prone"):
                raise RuleViolation(f"{actor.name} is not prone")
            self._require_affordable(actor, ActionCost.MOVE, free)
            while self.registry.remove(actor, "prone"):
                pass
            self._spend(actor, ActionCost.MOVE, free)
            result = ActionResult(action_type=ActionType.MOVE, actor_id=actor.id)
            result.conditions_removed.append("prone")
            result.add_message(f"{actor.name} stands up")
            return result

        if action.destination is None:
            raise CombatValidationError("move needs a destination or stand_up")
        if self.registry.flag(actor, "no_move"):
            raise RuleViolation(f"{actor.name} cannot move")
        start = self._require_position(actor)
        destination = action.destination
        speed = actor.speed // 2 if self.registry.flag(actor, "half_speed") else actor.speed
        moved = distance_feet(start, destination)
        if moved == 0:
            raise RuleViolation(f"{actor.name} is already there")
        if moved > speed:
            raise RuleViolation(f"{moved} ft exceeds speed {speed} ft")
        if destination in encounter.occupied_squares(exclude=actor):
            raise RuleViolation("destination is occupied")
        if destination in encounter.obstacle_squares():
            raise RuleViolation("destination is blocked")
        self._require_affordable(actor, ActionCost.MOVE, free)

        actor.position = destination
        self._spend(actor, ActionCost.MOVE, free)
        result = ActionResult(action_type=ActionType.MOVE, actor_id=actor.id, position=destination)
        result.details["moved_feet"] = moved
        result.add_message(f"{actor.name} moves {moved} ft to ({destination.x}, {destination.y})")
        return result

    def _full_defense(self, encounter, actor, action: FullDefense, free: bool) -> ActionResult:
        self._require_affordable(actor, ActionCost.FULL_ROUND, free)
        self._add_modifier(actor, TemporaryModifier("full_defense", ac=FULL_DEFENSE_AC_BONUS, until=NEXT_TURN))
        self._spend(actor, ActionCost.FULL_ROUND, free)
        result = ActionResult(action_type=ActionType.FULL_DEFENSE, actor_id=actor.id)
        result.details["ac_bonus"] = FULL_DEFENSE_AC_BONUS
        result.add_message(f"{actor.name} takes a full defense (+{FULL_DEFENSE_AC_BONUS} AC)")
        return result

    def _ready_action(self, encounter, actor, action: ReadyAction, free: bool) -> ActionResult:
        readied = action.readied
        readied_type = getattr(readied, "action_type", None)
        if readied_type not in self._handlers:
            raise UnsupportedActionError(f"Cannot ready unsupported action: {readied!r}")
        if readied_type == ActionType.READY_ACTION:
            raise CombatValidationError("A ready action cannot ready another ready action")
        target_id = getattr(readied, "target_id", None)
        if target_id is not None:
            encounter.require_combatant(target_id)
        if self.action_cost(readied) == ActionCost.FULL_ROUND:
            raise RuleViolation("full-round actions cannot be readied")
        self._require_affordable(actor, ActionCost.STANDARD, free)

        actor.readied = ReadiedAction(
            trigger=action.trigger,
            action=readied,
            round_readied=encounter.current_round,
        )
        self._spend(actor, ActionCost.STANDARD, free)
        result = ActionResult(action_type=ActionType.READY_ACTION, actor_id=actor.id, target_id=target_id)
        result.details["trigger"] = action.trigger.action_type.value
        result.details["readied"] = readied_type.value
        result.add_message(
            f"{actor.name} readies {readied_type.value} against the next {action.trigger.action_type.value}"
        )
        return result
