"""
Combat action data models
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from ..spatial import Position


class ActionType(str, Enum):
    """Action type tags"""

    MELEE_ATTACK = "melee_attack"
    RANGED_ATTACK = "ranged_attack"
    FULL_ATTACK = "full_attack"
    CAST_SPELL = "cast_spell"
    CHARGE = "charge"
    COMBAT_MANEUVER = "combat_maneuver"
    MOVE = "move"
    FULL_DEFENSE = "full_defense"
    READY_ACTION = "ready_action"


class ManeuverType(str, Enum):
    BULL_RUSH = "bull_rush"
    DISARM = "disarm"
    ESCAPE_GRAPPLE = "escape_grapple"
    GRAPPLE = "grapple"
    OVERRUN = "overrun"
    SUNDER = "sunder"
    TRIP = "trip"


@dataclass(frozen=True)
class AttackOptions:
    """Situational attack options"""

    power_attack: int = 0
    fighting_defensively: bool = False
    combat_expertise: int = 0
    bonus: int = 0


# ============================================
# Action variants
# ============================================


@dataclass(frozen=True)
class MeleeAttack:
    target_id: str
    options: AttackOptions = field(default_factory=AttackOptions)
    action_type: ActionType = field(default=ActionType.MELEE_ATTACK, init=False)


@dataclass(frozen=True)
class RangedAttack:
    target_id: str
    options: AttackOptions = field(default_factory=AttackOptions)
    action_type: ActionType = field(default=ActionType.RANGED_ATTACK, init=False)


@dataclass(frozen=True)
class FullAttack:
    target_id: str
    attack_count: Optional[int] = None  # None = derived from base attack bonus
    target_ids: Optional[Tuple[str, ...]] = None  # per-attack targets
    ranged: bool = False
    options: AttackOptions = field(default_factory=AttackOptions)
    action_type: ActionType = field(default=ActionType.FULL_ATTACK, init=False)

    def targets_for(self, count: int) -> List[str]:
        if self.target_ids:
            return list(self.target_ids)
        return [self.target_id] * count


@dataclass(frozen=True)
class CastSpell:
    spell_name: str
    target_ids: Tuple[str, ...] = ()
    casting_defensively: bool = False
    action_type: ActionType = field(default=ActionType.CAST_SPELL, init=False)

    @property
    def target_id(self) -> Optional[str]:
        return self.target_ids[0] if self.target_ids else None


@dataclass(frozen=True)
class Charge:
    target_id: str
    options: AttackOptions = field(default_factory=AttackOptions)
    action_type: ActionType = field(default=ActionType.CHARGE, init=False)


@dataclass(frozen=True)
class CombatManeuver:
    maneuver: ManeuverType
    target_id: str
    suppress_aoo: bool = False  # caller-supplied capability (feat, ability)
    action_type: ActionType = field(default=ActionType.COMBAT_MANEUVER, init=False)


@dataclass(frozen=True)
class Move:
    destination: Optional[Position] = None
    stand_up: bool = False
    action_type: ActionType = field(default=ActionType.MOVE, init=False)

    @property
    def target_id(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class FullDefense:
    action_type: ActionType = field(default=ActionType.FULL_DEFENSE, init=False)

    @property
    def target_id(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class ReadyTrigger:
    """Fires when a hostile combatant resolves an action of this type"""

    action_type: ActionType
    actor_id: Optional[str] = None

    def matches(self, action_type: ActionType, actor_id: str) -> bool:
        if self.action_type != action_type:
            return False
        return self.actor_id is None or self.actor_id == actor_id


@dataclass(frozen=True)
class ReadyAction:
    trigger: ReadyTrigger
    readied: "Action"
    action_type: ActionType = field(default=ActionType.READY_ACTION, init=False)

    @property
    def target_id(self) -> Optional[str]:
        return getattr(self.readied, "target_id", None)


Action = Union[
    MeleeAttack,
    RangedAttack,
    FullAttack,
    CastSpell,
    Charge,
    CombatManeuver,
    Move,
    FullDefense,
    ReadyAction,
]


@dataclass
class ReadiedAction:
    """A ready_action registered on a combatant"""

    trigger: ReadyTrigger
    action: Action
    round_readied: int


# ============================================
# Results
# ============================================


@dataclass
class DiceRoll:
    """A d20 roll with its modifier"""

    dice_notation: str
    roll_result: int
    modifier: int
    total: int

    def __str__(self) -> str:
        if self.modifier >= 0:
            return f"{self.dice_notation} ({self.roll_result}) + {self.modifier} = {self.total}"
        return f"{self.dice_notation} ({self.roll_result}) - {abs(self.modifier)} = {self.total}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dice": self.dice_notation,
            "roll": self.roll_result,
            "modifier": self.modifier,
            "total": self.total,
        }


@dataclass
class AttackRoll:
    """Attack roll outcome"""

    hit_roll: DiceRoll
    target_ac: int
    is_hit: bool
    threatened: bool = False
    confirm_roll: Optional[DiceRoll] = None
    is_critical: bool = False
    bonus_terms: Dict[str, int] = field(default_factory=dict)

    def to_display_text(self) -> str:
        text = f"{self.hit_roll} vs AC {self.target_ac} -> {'hit' if self.is_hit else 'miss'}"
        if self.confirm_roll is not None:
            verdict = "confirmed" if self.is_critical else "not confirmed"
            text += f"; critical {verdict} ({self.confirm_roll})"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roll": self.hit_roll.to_dict(),
            "target_ac": self.target_ac,
            "hit": self.is_hit,
            "threatened": self.threatened,
            "confirm": self.confirm_roll.to_dict() if self.confirm_roll else None,
            "critical": self.is_critical,
            "terms": dict(self.bonus_terms),
        }


@dataclass
class DamageBreakdown:
    """Damage roll broken down by component"""

    dice: str
    rolls: List[int] = field(default_factory=list)
    base: int = 0  # sum of all dice, already multiplied on a critical
    bonus: int = 0
    multiplier: int = 1
    raw: int = 0  # before damage reduction
    reduced_by: int = 0
    total: int = 0
    damage_type: str = "bludgeoning"
    critical: bool = False
    bonus_terms: Dict[str, int] = field(default_factory=dict)

    def to_display_text(self) -> str:
        text = f"{self.dice} x{self.multiplier} ({self.base}) + {self.bonus} = {self.raw}"
        if self.reduced_by:
            text += f", DR -{self.reduced_by} -> {self.total}"
        return f"{text} {self.damage_type}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dice": self.dice,
            "rolls": list(self.rolls),
            "base": self.base,
            "bonus": self.bonus,
            "multiplier": self.multiplier,
            "raw": self.raw,
            "reduced_by": self.reduced_by,
            "total": self.total,
            "type": self.damage_type,
            "critical": self.critical,
        }


@dataclass
class ActionResult:
    """
    Outcome of executing one action
    """

    action_type: ActionType
    actor_id: str
    target_id: Optional[str] = None

    success: bool = True
    rejected: bool = False
    reason: Optional[str] = None

    # Attack
    hit: bool = False
    critical: bool = False
    natural_one: bool = False
    natural_twenty: bool = False
    attack_roll: Optional[AttackRoll] = None
    damage: Optional[DamageBreakdown] = None
    damage_taken: int = 0

    # Conditions and movement
    conditions_applied: List[str] = field(default_factory=list)
    conditions_removed: List[str] = field(default_factory=list)
    position: Optional[Position] = None

    # Maneuver / spell details
    details: Dict[str, Any] = field(default_factory=dict)

    # Full attack iterations
    sub_results: List["ActionResult"] = field(default_factory=list)

    # Messages for display
    messages: List[str] = field(default_factory=list)

    def add_message(self, message: str):
        self.messages.append(message)

    def to_display_text(self) -> str:
        return "\n".join(self.messages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.action_type.value,
            "actor": self.actor_id,
            "target": self.target_id,
            "success": self.success,
            "rejected": self.rejected,
            "reason": self.reason,
            "hit": self.hit,
            "critical": self.critical,
            "natural_one": self.natural_one,
            "natural_twenty": self.natural_twenty,
            "attack_roll": self.attack_roll.to_dict() if self.attack_roll else None,
            "damage": self.damage.to_dict() if self.damage else None,
            "damage_taken": self.damage_taken,
            "conditions_applied": list(self.conditions_applied),
            "conditions_removed": list(self.conditions_removed),
            "position": self.position.to_dict() if self.position else None,
            "details": dict(self.details),
            "sub_results": [result.to_dict() for result in self.sub_results],
            "display_text": self.to_display_text(),
        }
