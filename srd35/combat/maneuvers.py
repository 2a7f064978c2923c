"""
Combat maneuver resolver

Bull rush, disarm, grapple, overrun, sunder and trip as opposed d20 checks,
plus the grapple-vs-grapple check to break free of a hold.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Union

from . import calculator
from .conditions import ConditionRegistry
from .dice import DiceRoller
from .errors import RuleViolation, UnknownManeuverError
from .models.action import DiceRoll, ManeuverType
from .models.combatant import AttackKind, Combatant
from .models.encounter import CombatEncounter
from .rules import BULL_RUSH_BASE_PUSH_FEET, CombatRules, ManeuverDefinition
from .spatial import SQUARE_FEET, Position, push_away

logger = logging.getLogger(__name__)

ACTOR = "actor"
DEFENDER = "defender"


@dataclass
class ManeuverOutcome:
    """Result of one opposed maneuver check"""

    maneuver: ManeuverType
    success: bool
    actor_roll: DiceRoll
    defender_roll: DiceRoll
    margin: int = 0
    conditions_applied: List[str] = field(default_factory=list)
    conditions_removed: List[str] = field(default_factory=list)
    pushed_feet: int = 0
    position: Optional[Position] = None
    weapon_removed: Optional[str] = None
    weapon_damage: int = 0
    weapon_destroyed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "maneuver": self.maneuver.value,
            "success": self.success,
            "actor_roll": self.actor_roll.to_dict(),
            "defender_roll": self.defender_roll.to_dict(),
            "margin": self.margin,
            "conditions_applied": list(self.conditions_applied),
            "conditions_removed": list(self.conditions_removed),
            "pushed_feet": self.pushed_feet,
            "position": self.position.to_dict() if self.position else None,
            "weapon_removed": self.weapon_removed,
            "weapon_damage": self.weapon_damage,
            "weapon_destroyed": self.weapon_destroyed,
        }


def grappled_by(holder: Combatant, grappler: Combatant) -> bool:
    return any(c.name == "grappled" and c.source == grappler.id for c in holder.conditions)


def maneuver_type(value: Union[ManeuverType, str]) -> ManeuverType:
    try:
        return ManeuverType(value)
    except ValueError:
        raise UnknownManeuverError(f"Unknown combat maneuver: {value}") from None


class ManeuverResolver:
    """Resolves maneuvers against the rules' maneuver table"""

    def __init__(self, rules: CombatRules, registry: ConditionRegistry, dice: DiceRoller):
        self.rules = rules
        self.registry = registry
        self.dice = dice

    def definition(self, maneuver: Union[ManeuverType, str]) -> ManeuverDefinition:
        kind = maneuver_type(maneuver)
        definition = self.rules.maneuvers.get(kind.value)
        if definition is None:
            raise UnknownManeuverError(f"No definition for maneuver: {kind.value}")
        return definition

    def provokes_attack_of_opportunity(
        self,
        actor: Combatant,
        maneuver: Union[ManeuverType, str],
        suppress: bool = False,
    ) -> bool:
        """
        Whether the maneuver draws an attack of opportunity

        The caller may suppress it with a flag; so can the actor's
        "maneuver_without_aoo" or "<maneuver>_without_aoo" capability.
        """
        definition = self.definition(maneuver)
        if not definition.provokes_aoo or suppress:
            return False
        capabilities = actor.capabilities
        if "maneuver_without_aoo" in capabilities:
            return False
        return f"{definition.name}_without_aoo" not in capabilities

    def check_bonus(
        self,
        combatant: Combatant,
        maneuver: Union[ManeuverType, str],
        role: str = ACTOR,
    ) -> calculator.ModifierBreakdown:
        definition = self.definition(maneuver)
        if definition.check == "attack":
            return calculator.attack_bonus(combatant, AttackKind.MELEE, rules=self.rules)
        if definition.check == "grapple":
            return calculator.grapple_bonus(combatant)

        ability = "strength"
        if definition.name == ManeuverType.TRIP.value and role == DEFENDER:
            if calculator.effective_modifier(combatant, "dexterity") > calculator.effective_modifier(
                combatant, "strength"
            ):
                ability = "dexterity"
        return calculator.ModifierBreakdown.from_terms(
            {
                ability: calculator.effective_modifier(combatant, ability),
                "size": calculator.special_size_modifier(combatant.size),
            }
        )

    def validate(self, actor: Combatant, defender: Combatant, maneuver: Union[ManeuverType, str]):
        """Rule checks that must pass before anything is rolled."""
        kind = maneuver_type(maneuver)
        self.definition(kind)
        if kind in (ManeuverType.DISARM, ManeuverType.SUNDER) and defender.weapon is None:
            raise RuleViolation(f"{defender.name} holds no weapon to {kind.value}")
        if kind == ManeuverType.GRAPPLE and defender.has_condition("grappled"):
            raise RuleViolation(f"{defender.name} is already grappled")
        if kind == ManeuverType.ESCAPE_GRAPPLE and not grappled_by(actor, defender):
            raise RuleViolation(f"{actor.name} is not held by {defender.name}")

    def _roll(self, combatant: Combatant, maneuver: ManeuverType, role: str) -> DiceRoll:
        bonus = self.check_bonus(combatant, maneuver, role)
        natural = self.dice.d20()
        return DiceRoll("1d20", natural, bonus.total, natural + bonus.total)

    def resolve(
        self,
        encounter: CombatEncounter,
        actor: Combatant,
        defender: Combatant,
        maneuver: Union[ManeuverType, str],
    ) -> ManeuverOutcome:
        """Opposed check; ties favour the defender."""
        kind = maneuver_type(maneuver)
        self.validate(actor, defender, kind)

        actor_roll = self._roll(actor, kind, ACTOR)
        defender_roll = self._roll(defender, kind, DEFENDER)
        margin = actor_roll.total - defender_roll.total
        outcome = ManeuverOutcome(
            maneuver=kind,
            success=margin > 0,
            actor_roll=actor_roll,
            defender_roll=defender_roll,
            margin=margin,
        )
        logger.debug(
            "%s %s vs %s: %d vs %d", actor.id, kind.value, defender.id,
            actor_roll.total, defender_roll.total,
        )
        if outcome.success:
            self._apply_consequence(encounter, actor, defender, outcome)
        return outcome

    # ===== Consequences =====

    def _apply_consequence(
        self,
        encounter: CombatEncounter,
        actor: Combatant,
        defender: Combatant,
        outcome: ManeuverOutcome,
    ) -> None:
        kind = outcome.maneuver
        if kind == ManeuverType.BULL_RUSH:
            self._push(encounter, actor, defender, outcome)
        elif kind in (ManeuverType.TRIP, ManeuverType.OVERRUN):
            if not defender.has_condition("prone"):
                self.registry.apply(defender, "prone", source=actor.id)
                outcome.conditions_applied.append("prone")
        elif kind == ManeuverType.DISARM:
            outcome.weapon_removed = defender.weapon.name
            defender.weapon = None
        elif kind == ManeuverType.GRAPPLE:
            self.registry.apply(defender, "grappled", source=actor.id)
            self.registry.apply(actor, "grappled", source=defender.id)
            outcome.conditions_applied.append("grappled")
        elif kind == ManeuverType.ESCAPE_GRAPPLE:
            self.registry.remove(actor, "grappled", source=defender.id)
            self.registry.remove(defender, "grappled", source=actor.id)
            outcome.conditions_removed.append("grappled")
        elif kind == ManeuverType.SUNDER:
            self._sunder(actor, defender, outcome)

    def _push(
        self,
        encounter: CombatEncounter,
        actor: Combatant,
        defender: Combatant,
        outcome: ManeuverOutcome,
    ) -> None:
        """5 ft, plus 5 ft per 5 points of margin; stops at anything in the way."""
        if actor.position is None or defender.position is None:
            return
        feet = BULL_RUSH_BASE_PUSH_FEET + SQUARE_FEET * (outcome.margin // 5)
        blocked = set(encounter.occupied_squares(exclude=defender))
        blocked.update(encounter.obstacle_squares())

        destination = defender.position
        for square in push_away(actor.position, defender.position, feet // SQUARE_FEET):
            if square in blocked:
                break
            destination = square
        moved = max(abs(destination.x - defender.position.x), abs(destination.y - defender.position.y))
        defender.position = destination
        outcome.pushed_feet = moved * SQUARE_FEET
        outcome.position = destination

    def _sunder(self, actor: Combatant, defender: Combatant, outcome: ManeuverOutcome) -> None:
        weapon = defender.weapon
        attacker_weapon = actor.active_weapon
        rolled = self.dice.roll(attacker_weapon.damage).total
        bonus = calculator.damage_bonus(actor, attacker_weapon, rules=self.rules).total
        damage = max(0, rolled + bonus - weapon.hardness)
        remaining = weapon.hit_points - damage
        outcome.weapon_damage = damage
        if remaining <= 0:
            outcome.weapon_destroyed = True
            outcome.weapon_removed = weapon.name
            defender.weapon = None
        else:
            defender.weapon = replace(weapon, hit_points=remaining)
