"""Damage rolling, damage reduction and hit point transitions."""
import logging
from dataclasses import dataclass
from typing import Optional

from .calculator import damage_bonus
from .conditions import ConditionRegistry
from .dice import DiceRoller, parse_notation
from .models.action import AttackOptions, DamageBreakdown
from .models.combatant import Combatant, DamageReduction, UNARMED_STRIKE, Weapon
from .rules import DEATH_THRESHOLD, MINIMUM_DAMAGE, CombatRules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DamageOutcome:
    """What one application of damage did to a combatant"""

    taken: int
    hp_before: int
    hp_after: int
    became_unconscious: bool = False
    became_dead: bool = False


def weapon_bypasses(weapon: Optional[Weapon], dr: DamageReduction) -> bool:
    """
    Whether the weapon ignores the damage reduction

    "-" is never bypassed; "magic" is bypassed by any enhancement or the
    magic property; other types by a matching property or damage type.
    """
    if weapon is None or dr.type == "-":
        return False
    if dr.type == "magic":
        return weapon.is_magic
    return dr.type in weapon.properties or dr.type == weapon.damage_type


def apply_damage_reduction(target: Combatant, raw_damage: int, weapon: Optional[Weapon] = None) -> int:
    dr = target.damage_reduction
    if dr is None or dr.amount <= 0:
        return raw_damage
    if weapon_bypasses(weapon or UNARMED_STRIKE, dr):
        return raw_damage
    return max(0, raw_damage - dr.amount)


def roll_weapon_damage(
    dice: DiceRoller,
    attacker: Combatant,
    target: Combatant,
    weapon: Optional[Weapon] = None,
    is_critical: bool = False,
    options: Optional[AttackOptions] = None,
    rules: Optional[CombatRules] = None,
) -> DamageBreakdown:
    """
    Roll weapon damage for one hit

    A critical rolls the damage dice critical_multiplier times; the flat
    bonus is added once. At least 1 damage before DR.
    """
    weapon = weapon or attacker.active_weapon
    multiplier = weapon.critical_multiplier if is_critical else 1
    _, _, dice_modifier = parse_notation(weapon.damage)

    rolls = []
    for _ in range(multiplier):
        rolls.extend(dice.roll(weapon.damage).rolls)
    base = sum(rolls)

    bonus = damage_bonus(attacker, weapon, options, rules)
    flat = bonus.total + dice_modifier
    raw = max(MINIMUM_DAMAGE, base + flat)
    total = apply_damage_reduction(target, raw, weapon)

    terms = dict(bonus.terms)
    if dice_modifier:
        terms["dice_modifier"] = dice_modifier
    return DamageBreakdown(
        dice=weapon.damage,
        rolls=rolls,
        base=base,
        bonus=flat,
        multiplier=multiplier,
        raw=raw,
        reduced_by=raw - total,
        total=total,
        damage_type=weapon.damage_type,
        critical=is_critical,
        bonus_terms=terms,
    )


def apply_damage(target: Combatant, amount: int, registry: ConditionRegistry) -> DamageOutcome:
    """
    Reduce hit points and apply the unconscious/dead transition

    HP may go negative. At 0 or below the target is unconscious; at -10 or
    below it is dead, and a dead combatant's HP no longer changes. The
    reported damage taken is capped at the HP the target had left.
    """
    hp_before = target.hp
    if amount <= 0 or target.has_condition("dead"):
        return DamageOutcome(taken=0, hp_before=hp_before, hp_after=hp_before)

    taken = min(amount, max(hp_before, 0))
    target.hp = hp_before - amount

    became_unconscious = False
    became_dead = False
    if target.hp <= DEATH_THRESHOLD:
        registry.remove(target, "unconscious")
        registry.apply(target, "dead", source="damage")
        became_dead = True
        logger.debug("%s dies at %d hp", target.id, target.hp)
    elif target.hp <= 0 and not target.has_condition("unconscious"):
        registry.apply(target, "unconscious", source="damage")
        became_unconscious = True
        logger.debug("%s falls unconscious at %d hp", target.id, target.hp)

    return DamageOutcome(
        taken=taken,
        hp_before=hp_before,
        hp_after=target.hp,
        became_unconscious=became_unconscious,
        became_dead=became_dead,
    )


def heal(target: Combatant, amount: int, registry: ConditionRegistry) -> int:
    """Restore hit points up to max; returns the amount actually healed."""
    if amount <= 0 or target.has_condition("dead"):
        return 0
    before = target.hp
    target.hp = min(target.max_hp, target.hp + amount)
    if target.hp > 0:
        registry.remove(target, "unconscious")
    return target.hp - before
