"""Condition registry and effect aggregation helpers."""
import logging
from dataclasses import fields
from typing import Iterable, List, Mapping, Optional

from .errors import UnknownConditionError
from .models.combatant import AttackKind, Combatant
from .models.condition import NEXT_TURN, ConditionDefinition, ConditionEffects, ConditionInstance

logger = logging.getLogger(__name__)

_NUMERIC_FIELDS = frozenset(
    f.name for f in fields(ConditionEffects) if f.type in (int, "int")
)
_FLAG_FIELDS = frozenset(
    f.name for f in fields(ConditionEffects) if f.type in (bool, "bool")
)


def active_conditions(combatant: Combatant) -> List[ConditionInstance]:
    """
    Conditions whose numeric deltas count right now.

    While an exclusive condition (dead, unconscious) is held only the
    exclusive ones contribute.
    """
    exclusive = [c for c in combatant.conditions if c.exclusive]
    return exclusive or list(combatant.conditions)


def condition_total(combatant: Combatant, name: str) -> int:
    if name not in _NUMERIC_FIELDS:
        raise KeyError(f"Not a numeric condition effect: {name}")
    return sum(getattr(c.effects, name) for c in active_conditions(combatant))


def condition_flag(combatant: Combatant, name: str) -> bool:
    if name not in _FLAG_FIELDS:
        raise KeyError(f"Not a condition flag: {name}")
    return any(getattr(c.effects, name) for c in combatant.conditions)


def attack_delta(combatant: Combatant, kind: Optional[AttackKind] = None) -> int:
    total = condition_total(combatant, "attack")
    if kind == AttackKind.MELEE:
        total += condition_total(combatant, "melee_attack")
    elif kind == AttackKind.RANGED:
        total += condition_total(combatant, "ranged_attack")
    return total


def ac_delta(combatant: Combatant, kind: Optional[AttackKind] = None) -> int:
    total = condition_total(combatant, "ac")
    if kind == AttackKind.MELEE:
        total += condition_total(combatant, "ac_vs_melee")
    elif kind == AttackKind.RANGED:
        total += condition_total(combatant, "ac_vs_ranged")
    return total


def save_delta(combatant: Combatant, save: str) -> int:
    return condition_total(combatant, "saves") + condition_total(combatant, save)


def skill_delta(combatant: Combatant) -> int:
    return condition_total(combatant, "skills")


def ability_delta(combatant: Combatant, ability: str) -> int:
    if ability in ("strength", "dexterity"):
        return condition_total(combatant, ability)
    return 0


class ConditionRegistry:
    """
    Named condition table plus attach/detach per combatant

    Built from CombatRules.conditions. Unknown names fail with
    UnknownConditionError.
    """

    def __init__(self, definitions: Mapping[str, ConditionDefinition]):
        self._definitions = definitions

    def names(self) -> List[str]:
        return sorted(self._definitions)

    def definition(self, name: str) -> ConditionDefinition:
        definition = self._definitions.get(name)
        if definition is None:
            raise UnknownConditionError(name)
        return definition

    def validate(self, names: Iterable[str]) -> None:
        for name in names:
            self.definition(name)

    # ===== Attach / detach =====

    def apply(
        self,
        combatant: Combatant,
        name: str,
        duration: Optional[int] = None,
        source: Optional[str] = None,
        until: Optional[str] = None,
    ) -> ConditionInstance:
        """
        Attach a condition

        Every call adds a new instance and their effects stack. Exclusive
        conditions (dead, unconscious) are the exception: a holder keeps a
        single instance, so re-applying one returns the instance it has.
        """
        definition = self.definition(name)
        if duration is not None and duration < 1:
            raise ValueError(f"duration must be >= 1 round, got {duration}")

        if definition.exclusive:
            for existing in combatant.conditions:
                if existing.name == name:
                    return existing

        instance = ConditionInstance(
            name=name,
            effects=definition.effects,
            duration=duration,
            until=until,
            source=source,
            exclusive=definition.exclusive,
        )
        combatant.conditions.append(instance)
        logger.debug("%s gains %s (duration=%s, until=%s)", combatant.id, name, duration, until)
        return instance

    def remove(self, combatant: Combatant, name: str, source: Optional[str] = None) -> bool:
        """Remove the first instance by name (and source, when given); False when none is held."""
        for index, condition in enumerate(combatant.conditions):
            if condition.name == name and (source is None or condition.source == source):
                del combatant.conditions[index]
                logger.debug("%s loses %s", combatant.id, name)
                return True
        return False

    def has(self, combatant: Combatant, name: str) -> bool:
        return combatant.has_condition(name)

    # ===== Aggregation =====

    def active(self, combatant: Combatant) -> List[ConditionInstance]:
        return active_conditions(combatant)

    def total(self, combatant: Combatant, name: str) -> int:
        return condition_total(combatant, name)

    def flag(self, combatant: Combatant, name: str) -> bool:
        return condition_flag(combatant, name)

    def attack_delta(self, combatant: Combatant, kind: Optional[AttackKind] = None) -> int:
        return attack_delta(combatant, kind)

    def ac_delta(self, combatant: Combatant, kind: Optional[AttackKind] = None) -> int:
        return ac_delta(combatant, kind)

    def save_delta(self, combatant: Combatant, save: str) -> int:
        return save_delta(combatant, save)

    def skill_delta(self, combatant: Combatant) -> int:
        return skill_delta(combatant)

    def ability_delta(self, combatant: Combatant, ability: str) -> int:
        return ability_delta(combatant, ability)

    # ===== Duration ticks =====

    def start_of_turn(self, combatant: Combatant) -> List[str]:
        """Drop conditions that last until the holder's next turn."""
        expired = [c.name for c in combatant.conditions if c.until == NEXT_TURN]
        combatant.conditions = [c for c in combatant.conditions if c.until != NEXT_TURN]
        return expired

    def end_of_turn(self, combatant: Combatant) -> List[str]:
        """Count down round durations; returns the names that ran out."""
        expired = []
        remaining = []
        for condition in combatant.conditions:
            if condition.tick():
                expired.append(condition.name)
            else:
                remaining.append(condition)
        combatant.conditions = remaining
        return expired
