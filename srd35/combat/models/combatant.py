"""
Combatant data models
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Optional, Set

from ..spatial import Position
from .condition import ConditionInstance

if TYPE_CHECKING:
    from .action import ReadiedAction


class Faction(str, Enum):
    """Combatant side"""

    PC = "pc"
    NPC = "npc"


class Size(str, Enum):
    """SRD size categories"""

    FINE = "fine"
    DIMINUTIVE = "diminutive"
    TINY = "tiny"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    HUGE = "huge"
    GARGANTUAN = "gargantuan"
    COLOSSAL = "colossal"


class AttackKind(str, Enum):
    MELEE = "melee"
    RANGED = "ranged"


class ActionCost(str, Enum):
    """Action economy slot"""

    STANDARD = "standard"
    MOVE = "move"
    FULL_ROUND = "full_round"
    SWIFT = "swift"
    IMMEDIATE = "immediate"
    FREE = "free"


ABILITY_NAMES = ("strength", "dexterity", "constitution", "intelligence", "wisdom", "charisma")


@dataclass
class AbilityScores:
    """The six ability scores"""

    strength: int = 10
    dexterity: int = 10
    constitution: int = 10
    intelligence: int = 10
    wisdom: int = 10
    charisma: int = 10

    def get(self, ability: str) -> int:
        if ability not in ABILITY_NAMES:
            raise KeyError(f"Unknown ability: {ability}")
        return getattr(self, ability)

    def to_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in ABILITY_NAMES}


@dataclass
class Weapon:
    """A wielded weapon"""

    name: str
    damage: str = "1d3"
    threat_range: int = 20  # lowest natural roll that threatens (19 for 19-20)
    critical_multiplier: int = 2
    damage_type: str = "bludgeoning"
    enhancement: int = 0
    ranged: bool = False
    thrown: bool = False
    finesse: bool = False
    two_handed: bool = False
    reach: int = 5
    properties: FrozenSet[str] = frozenset()  # "magic", "silver", "cold_iron", ...
    hardness: int = 10
    hit_points: int = 5

    @property
    def is_magic(self) -> bool:
        return self.enhancement > 0 or "magic" in self.properties

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "damage": self.damage,
            "threat_range": self.threat_range,
            "critical_multiplier": self.critical_multiplier,
            "damage_type": self.damage_type,
            "enhancement": self.enhancement,
            "ranged": self.ranged,
        }


UNARMED_STRIKE = Weapon(name="unarmed strike", damage="1d3", damage_type="bludgeoning")


@dataclass(frozen=True)
class DamageReduction:
    """DR amount/type, e.g. 5/magic; type "-" cannot be bypassed"""

    amount: int
    type: str = "-"


@dataclass
class ArmorInputs:
    """Armor class inputs other than Dexterity and size"""

    armor_bonus: int = 0
    shield_bonus: int = 0
    max_dex_bonus: Optional[int] = None  # None = unlimited
    natural_armor: int = 0
    deflection: int = 0


@dataclass
class TemporaryModifier:
    """A short-lived bonus/penalty such as charging or full defense"""

    source: str
    ac: int = 0
    attack: int = 0
    until: str = "next_turn"


@dataclass
class ActionEconomy:
    """Per-turn action flags"""

    standard: bool = True
    move: bool = True
    swift: bool = True
    immediate: bool = True

    def reset(self) -> None:
        self.standard = True
        self.move = True
        self.swift = True
        self.immediate = True

    def can_afford(self, cost: ActionCost) -> bool:
        if cost == ActionCost.FREE:
            return True
        if cost == ActionCost.STANDARD:
            return self.standard
        if cost == ActionCost.MOVE:
            # a standard action can always be downgraded to a move action
            return self.move or self.standard
        if cost == ActionCost.FULL_ROUND:
            return self.standard and self.move
        if cost == ActionCost.SWIFT:
            return self.swift and self.immediate
        if cost == ActionCost.IMMEDIATE:
            return self.immediate and self.swift
        return False

    def spend(self, cost: ActionCost) -> bool:
        """Consume the slot; returns False when it is not available."""
        if not self.can_afford(cost):
            return False
        if cost == ActionCost.STANDARD:
            self.standard = False
        elif cost == ActionCost.MOVE:
            if self.move:
                self.move = False
            else:
                self.standard = False
        elif cost == ActionCost.FULL_ROUND:
            self.standard = False
            self.move = False
        elif cost in (ActionCost.SWIFT, ActionCost.IMMEDIATE):
            # swift and immediate share one slot per round
            self.swift = False
            self.immediate = False
        return True

    def to_dict(self) -> Dict[str, bool]:
        return {
            "standard": self.standard,
            "move": self.move,
            "swift": self.swift,
            "immediate": self.immediate,
            "free": True,
        }


@dataclass
class Combatant:
    """
    A participant in one encounter

    Required fields first, everything else has an SRD default.
    """

    # ===== Identity =====
    id: str
    name: str
    faction: Faction

    # ===== Hit points =====
    hp: int
    max_hp: int

    # ===== Core statistics =====
    abilities: AbilityScores = field(default_factory=AbilityScores)
    base_attack_bonus: int = 0
    base_saves: Dict[str, int] = field(
        default_factory=lambda: {"fortitude": 0, "reflex": 0, "will": 0}
    )
    armor: ArmorInputs = field(default_factory=ArmorInputs)
    size: Size = Size.MEDIUM
    speed: int = 30

    # ===== Equipment and feats =====
    weapon: Optional[Weapon] = None
    feats: Set[str] = field(default_factory=set)
    capabilities: Set[str] = field(default_factory=set)
    damage_reduction: Optional[DamageReduction] = None

    # ===== Initiative =====
    initiative_bonus: int = 0  # equipment and other non-feat bonuses
    initiative: int = 0  # rolled once per encounter

    # ===== Runtime state =====
    conditions: List[ConditionInstance] = field(default_factory=list)
    economy: ActionEconomy = field(default_factory=ActionEconomy)
    temporary_modifiers: List[TemporaryModifier] = field(default_factory=list)
    readied: Optional["ReadiedAction"] = None
    attacks_of_opportunity: int = 1
    position: Optional[Position] = None  # assigned by the engine when missing

    # ===== Spellcasting =====
    caster_level: int = 0
    spellcasting_ability: str = "intelligence"
    spell_slots: Dict[int, int] = field(default_factory=dict)

    # ===== AI =====
    ai_personality: Optional[str] = None

    # ===== Convenience =====

    def is_pc(self) -> bool:
        return self.faction == Faction.PC

    def is_npc(self) -> bool:
        return self.faction == Faction.NPC

    def is_hostile_to(self, other: "Combatant") -> bool:
        return self.faction != other.faction

    def is_defeated(self) -> bool:
        """Out of the fight: hp at or below 0, or dead/unconscious."""
        return self.hp <= 0 or self.has_condition("dead") or self.has_condition("unconscious")

    def has_condition(self, name: str) -> bool:
        return any(condition.name == name for condition in self.conditions)

    def condition_names(self) -> List[str]:
        return [condition.name for condition in self.conditions]

    @property
    def active_weapon(self) -> Weapon:
        return self.weapon or UNARMED_STRIKE

    def temporary_ac(self) -> int:
        return sum(modifier.ac for modifier in self.temporary_modifiers)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize (for snapshots and summaries)"""
        return {
            "id": self.id,
            "name": self.name,
            "faction": self.faction.value,
            "hp": self.hp,
            "max_hp": self.max_hp,
            "abilities": self.abilities.to_dict(),
            "base_attack_bonus": self.base_attack_bonus,
            "size": self.size.value,
            "speed": self.speed,
            "weapon": self.weapon.to_dict() if self.weapon else None,
            "initiative": self.initiative,
            "position": self.position.to_dict() if self.position else None,
            "conditions": [condition.name for condition in self.conditions],
            "economy": self.economy.to_dict(),
            "spell_slots": dict(self.spell_slots),
        }
