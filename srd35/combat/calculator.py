"""
Modifier calculator

Pure functions over a Combatant: no dice, no mutation. Anything that sums
several terms returns a ModifierBreakdown so each term can be checked on
its own.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from . import conditions
from .models.action import AttackOptions
from .models.combatant import AttackKind, Combatant, Size, Weapon
from .rules import (
    CHARGE_ATTACK_BONUS,
    FIGHTING_DEFENSIVELY_ATTACK_PENALTY,
    ITERATIVE_PENALTY,
    MAX_ITERATIVE_ATTACKS,
    SIZE_MODIFIERS,
    SPECIAL_SIZE_MODIFIERS,
    CombatRules,
)

SAVE_ABILITIES = {
    "fortitude": "constitution",
    "reflex": "dexterity",
    "will": "wisdom",
}


@dataclass(frozen=True)
class ModifierBreakdown:
    """A total with its named terms"""

    total: int
    terms: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_terms(cls, terms: Dict[str, int]) -> "ModifierBreakdown":
        return cls(total=sum(terms.values()), terms=dict(terms))

    def __int__(self) -> int:
        return self.total


def ability_modifier(score: int) -> int:
    """
    floor((score - 10) / 2)

    Defined for scores >= 1 and unbounded above.
    """
    if score < 1:
        raise ValueError(f"Ability score must be >= 1, got {score}")
    return (score - 10) // 2


def effective_ability(combatant: Combatant, ability: str) -> int:
    """Ability score after condition deltas (never below 1)."""
    score = combatant.abilities.get(ability) + conditions.ability_delta(combatant, ability)
    return max(1, score)


def effective_modifier(combatant: Combatant, ability: str) -> int:
    return ability_modifier(effective_ability(combatant, ability))


def size_modifier(size: Union[Size, str]) -> int:
    return SIZE_MODIFIERS[Size(size)]


def special_size_modifier(size: Union[Size, str]) -> int:
    return SPECIAL_SIZE_MODIFIERS[Size(size)]


def _attack_ability(combatant: Combatant, kind: AttackKind, weapon: Weapon) -> str:
    if kind == AttackKind.RANGED:
        return "dexterity"
    if weapon.finesse and effective_modifier(combatant, "dexterity") > effective_modifier(
        combatant, "strength"
    ):
        return "dexterity"
    return "strength"


def attack_bonus(
    combatant: Combatant,
    attack_kind: AttackKind,
    options: Optional[AttackOptions] = None,
    rules: Optional[CombatRules] = None,
    charge: bool = False,
    iterative_index: int = 0,
    weapon: Optional[Weapon] = None,
) -> ModifierBreakdown:
    """
    Attack roll bonus

    BAB + Str (melee) / Dex (ranged, or finesse melee when higher)
    + enhancement + size + conditions + situational options.
    """
    options = options or AttackOptions()
    weapon = weapon or combatant.active_weapon
    ability = _attack_ability(combatant, attack_kind, weapon)

    terms = {
        "base_attack_bonus": combatant.base_attack_bonus,
        ability: effective_modifier(combatant, ability),
        "enhancement": weapon.enhancement,
        "size": size_modifier(combatant.size),
        "conditions": conditions.attack_delta(combatant, attack_kind),
    }
    temporary = sum(m.attack for m in combatant.temporary_modifiers)
    if temporary:
        terms["temporary"] = temporary
    if rules is not None:
        feats = rules.attack_bonus(combatant.feats)
        if feats:
            terms["feats"] = feats
    if charge:
        terms["charge"] = CHARGE_ATTACK_BONUS
    if options.power_attack and attack_kind == AttackKind.MELEE:
        terms["power_attack"] = -options.power_attack
    if options.fighting_defensively:
        terms["fighting_defensively"] = FIGHTING_DEFENSIVELY_ATTACK_PENALTY
    if options.combat_expertise:
        terms["combat_expertise"] = -options.combat_expertise
    if iterative_index:
        terms["iterative"] = -ITERATIVE_PENALTY * iterative_index
    if options.bonus:
        terms["bonus"] = options.bonus
    return ModifierBreakdown.from_terms(terms)


def _dexterity_to_ac(combatant: Combatant) -> int:
    if conditions.condition_flag(combatant, "loses_dex_to_ac"):
        return 0
    dex = effective_modifier(combatant, "dexterity")
    if combatant.armor.max_dex_bonus is not None:
        dex = min(dex, combatant.armor.max_dex_bonus)
    return dex


def armor_class(
    combatant: Combatant, attack_kind: Optional[AttackKind] = None
) -> ModifierBreakdown:
    """
    10 + armor + shield + min(Dex, max Dex) + size + natural + deflection
    + condition deltas + temporary modifiers

    Dex contributes 0 (not merely capped) while flat-footed or paralyzed.
    Prone is -4 against melee and +4 against ranged attacks.
    """
    armor = combatant.armor
    terms = {
        "base": 10,
        "armor": armor.armor_bonus,
        "shield": armor.shield_bonus,
        "dexterity": _dexterity_to_ac(combatant),
        "size": size_modifier(combatant.size),
        "natural": armor.natural_armor,
        "deflection": armor.deflection,
        "conditions": conditions.ac_delta(combatant, attack_kind),
        "temporary": combatant.temporary_ac(),
    }
    return ModifierBreakdown.from_terms(terms)


def touch_armor_class(
    combatant: Combatant, attack_kind: Optional[AttackKind] = None
) -> ModifierBreakdown:
    terms = dict(armor_class(combatant, attack_kind).terms)
    for name in ("armor", "shield", "natural"):
        terms[name] = 0
    return ModifierBreakdown.from_terms(terms)


def flat_footed_armor_class(
    combatant: Combatant, attack_kind: Optional[AttackKind] = None
) -> ModifierBreakdown:
    terms = dict(armor_class(combatant, attack_kind).terms)
    terms["dexterity"] = 0
    return ModifierBreakdown.from_terms(terms)


def saving_throw_bonus(combatant: Combatant, save: str) -> ModifierBreakdown:
    if save not in SAVE_ABILITIES:
        raise ValueError(f"Unknown saving throw: {save}")
    ability = SAVE_ABILITIES[save]
    terms = {
        "base": combatant.base_saves.get(save, 0),
        ability: effective_modifier(combatant, ability),
        "conditions": conditions.save_delta(combatant, save),
    }
    return ModifierBreakdown.from_terms(terms)


def grapple_bonus(combatant: Combatant) -> ModifierBreakdown:
    """BAB + Str + special size modifier."""
    return ModifierBreakdown.from_terms(
        {
            "base_attack_bonus": combatant.base_attack_bonus,
            "strength": effective_modifier(combatant, "strength"),
            "size": special_size_modifier(combatant.size),
        }
    )


def initiative_modifier(combatant: Combatant, rules: CombatRules) -> ModifierBreakdown:
    """Dex + feat bonuses (Improved Initiative) + equipment/misc bonus."""
    return ModifierBreakdown.from_terms(
        {
            "dexterity": effective_modifier(combatant, "dexterity"),
            "feats": rules.initiative_bonus(combatant.feats),
            "misc": combatant.initiative_bonus,
        }
    )


def damage_bonus(
    attacker: Combatant,
    weapon: Weapon,
    options: Optional[AttackOptions] = None,
    rules: Optional[CombatRules] = None,
) -> ModifierBreakdown:
    """
    Flat damage added once per hit

    Strength (x1.5 two-handed; thrown weapons only among ranged ones),
    enhancement, feat bonuses and power attack (x2 two-handed).
    """
    options = options or AttackOptions()
    strength = effective_modifier(attacker, "strength")
    if weapon.ranged and not weapon.thrown:
        strength = 0
    elif weapon.two_handed and strength > 0:
        strength = (strength * 3) // 2

    terms = {
        "strength": strength,
        "enhancement": weapon.enhancement,
    }
    if rules is not None:
        terms["feats"] = rules.damage_bonus(attacker.feats)
    if options.power_attack and not weapon.ranged:
        terms["power_attack"] = options.power_attack * (2 if weapon.two_handed else 1)
    return ModifierBreakdown.from_terms(terms)


def iterative_attack_count(base_attack_bonus: int) -> int:
    """Attacks in a full attack: one more at BAB +6, +11 and +16."""
    if base_attack_bonus < 1:
        return 1
    return min(MAX_ITERATIVE_ATTACKS, 1 + (base_attack_bonus - 1) // ITERATIVE_PENALTY)


def iterative_attack_bonuses(base_attack_bonus: int, count: Optional[int] = None) -> List[int]:
    if count is None:
        count = iterative_attack_count(base_attack_bonus)
    return [base_attack_bonus - ITERATIVE_PENALTY * index for index in range(count)]


def base_attack_bonus_for(progression: str, level: int) -> int:
    """good = level, average = 3/4 level, poor = 1/2 level."""
    if progression == "good":
        return level
    if progression == "average":
        return (level * 3) // 4
    if progression == "poor":
        return level // 2
    raise ValueError(f"Unknown attack progression: {progression}")


def base_save_for(progression: str, level: int) -> int:
    """good = 2 + level/2, poor = level/3."""
    if progression == "good":
        return 2 + level // 2
    if progression == "poor":
        return level // 3
    raise ValueError(f"Unknown save progression: {progression}")


def concentration_bonus(caster: Combatant) -> ModifierBreakdown:
    ability = caster.spellcasting_ability
    return ModifierBreakdown.from_terms(
        {
            "caster_level": caster.caster_level,
            ability: effective_modifier(caster, ability),
            "conditions": conditions.condition_total(caster, "concentration"),
        }
    )
