"""
Condition data models
"""
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional

NEXT_TURN = "next_turn"


@dataclass(frozen=True)
class ConditionEffects:
    """Numeric deltas and behavioural flags carried by a condition"""

    # ===== Attack =====
    attack: int = 0
    melee_attack: int = 0
    ranged_attack: int = 0

    # ===== Armor class =====
    ac: int = 0
    ac_vs_melee: int = 0
    ac_vs_ranged: int = 0

    # ===== Saves and checks =====
    saves: int = 0
    fortitude: int = 0
    reflex: int = 0
    will: int = 0
    skills: int = 0
    concentration: int = 0

    # ===== Ability score deltas =====
    strength: int = 0
    dexterity: int = 0

    # ===== Flags =====
    no_actions: bool = False
    helpless: bool = False
    half_speed: bool = False
    no_move: bool = False
    loses_dex_to_ac: bool = False
    no_charge: bool = False
    no_ranged: bool = False
    no_spells: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Only the non-default entries."""
        defaults = ConditionEffects()
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) != getattr(defaults, f.name)
        }


@dataclass(frozen=True)
class ConditionDefinition:
    """Registry entry for a named condition"""

    name: str
    effects: ConditionEffects = field(default_factory=ConditionEffects)
    exclusive: bool = False  # supersedes non-exclusive conditions while active
    description: str = ""


@dataclass
class ConditionInstance:
    """A condition attached to one combatant"""

    name: str
    effects: ConditionEffects
    duration: Optional[int] = None  # remaining rounds, None = until removed
    until: Optional[str] = None  # sentinel such as "next_turn"
    source: Optional[str] = None
    exclusive: bool = False

    def tick(self) -> bool:
        """
        Called at the end of the holder's turn.

        Returns:
            bool: whether the condition has expired
        """
        if self.duration is None:
            return False
        self.duration -= 1
        return self.duration <= 0

    def copy(self) -> "ConditionInstance":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "duration": self.duration,
            "until": self.until,
            "source": self.source,
            "effects": self.effects.to_dict(),
        }
