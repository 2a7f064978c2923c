"""Spellcasting collaborator protocol and the default SRD caster."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from . import calculator
from .dice import DiceRoller
from .errors import CombatValidationError
from .models.action import DiceRoll
from .models.combatant import Combatant
from .rules import CONCENTRATION_BASE_DC, CRITICAL_HIT_ROLL, CRITICAL_MISS_ROLL

logger = logging.getLogger(__name__)


@dataclass
class SpellEffect:
    """One target's share of a resolved spell"""

    target_id: str
    damage: int = 0
    damage_type: Optional[str] = None
    healing: int = 0
    condition: Optional[str] = None
    duration: Optional[int] = None
    saved: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target_id,
            "damage": self.damage,
            "damage_type": self.damage_type,
            "healing": self.healing,
            "condition": self.condition,
            "duration": self.duration,
            "saved": self.saved,
        }


@dataclass
class SpellCastResult:
    """What the spellcasting collaborator returns"""

    success: bool
    effects: List[SpellEffect] = field(default_factory=list)
    message: str = ""


class Spellcaster(Protocol):
    """
    External spellcasting collaborator

    options carries "targets" (read-only combatant copies), "target_ids",
    "casting_defensively" and "spell_level". Implementations must not
    mutate the combatants they are given.
    """

    def cast_spell(
        self,
        caster: Combatant,
        spell_name: str,
        caster_level: int,
        options: Mapping[str, Any],
    ) -> SpellCastResult:
        ...


def concentration_dc(spell_level: int) -> int:
    """15 + 2 x spell level."""
    return CONCENTRATION_BASE_DC + 2 * spell_level


def roll_concentration(dice: DiceRoller, caster: Combatant, dc: int) -> Tuple[DiceRoll, bool]:
    """d20 + caster level + casting ability modifier against dc."""
    bonus = calculator.concentration_bonus(caster).total
    natural = dice.d20()
    roll = DiceRoll("1d20", natural, bonus, natural + bonus)
    return roll, roll.total >= dc


def roll_saving_throw(
    dice: DiceRoller, combatant: Combatant, save: str, dc: int
) -> Tuple[DiceRoll, bool]:
    """Natural 20 always succeeds, natural 1 always fails."""
    bonus = calculator.saving_throw_bonus(combatant, save).total
    natural = dice.d20()
    roll = DiceRoll("1d20", natural, bonus, natural + bonus)
    if natural == CRITICAL_HIT_ROLL:
        return roll, True
    if natural == CRITICAL_MISS_ROLL:
        return roll, False
    return roll, roll.total >= dc


def spell_save_dc(caster: Combatant, spell_level: int) -> int:
    """10 + spell level + casting ability modifier."""
    return 10 + spell_level + calculator.effective_modifier(caster, caster.spellcasting_ability)


class SrdSpellcaster:
    """
    Default collaborator driven by SpellRecord data

    Damage and healing dice are rolled per target; a saving throw (when the
    record names one) negates or halves the effect.
    """

    def __init__(self, repository, dice: DiceRoller):
        self.repository = repository
        self.dice = dice

    def cast_spell(
        self,
        caster: Combatant,
        spell_name: str,
        caster_level: int,
        options: Mapping[str, Any],
    ) -> SpellCastResult:
        spell = self.repository.get_spell(spell_name)
        if spell is None:
            raise CombatValidationError(f"Unknown spell: {spell_name}")

        targets: Sequence[Combatant] = list(options.get("targets") or [])[: spell.max_targets]
        if not targets:
            return SpellCastResult(success=False, message=f"{spell.name} has no target")

        dc = spell_save_dc(caster, spell.level)
        effects = []
        for target in targets:
            effect = SpellEffect(target_id=target.id)
            negated = False
            halved = False
            if spell.save and spell.save_effect != "none":
                _, saved = roll_saving_throw(self.dice, target, spell.save, dc)
                effect.saved = saved
                negated = saved and spell.save_effect == "negates"
                halved = saved and spell.save_effect == "half"

            if spell.damage and not negated:
                damage = self.dice.roll(spell.damage).total
                effect.damage = damage // 2 if halved else damage
                effect.damage_type = spell.damage_type
            if spell.healing:
                effect.healing = self.dice.roll(spell.healing).total
            if spell.condition and not effect.saved:
                effect.condition = spell.condition
                effect.duration = spell.condition_duration
            effects.append(effect)

        logger.debug("%s casts %s (CL %d) on %d target(s)", caster.id, spell.name, caster_level, len(effects))
        return SpellCastResult(
            success=True,
            effects=effects,
            message=f"{caster.name} casts {spell.name}",
        )
