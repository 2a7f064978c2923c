"""SRD rules records and combatant specs."""
from __future__ import annotations

import re
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

_DICE_PATTERN = re.compile(r"^\d*d\d+([+-]\d+)?$")


def _check_dice(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not _DICE_PATTERN.match(value.replace(" ", "").lower()):
        raise ValueError(f"not a dice expression: {value}")
    return value


class SrdRecord(BaseModel):
    """Base for immutable rules records."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    source: str = "srd"


class RaceRecord(SrdRecord):
    size: str = "medium"
    speed: int = 30
    ability_adjustments: Dict[str, int] = Field(default_factory=dict)
    traits: List[str] = Field(default_factory=list)


class ClassRecord(SrdRecord):
    hit_die: int = 8
    base_attack_bonus: Literal["good", "average", "poor"] = "average"
    fortitude: Literal["good", "poor"] = "poor"
    reflex: Literal["good", "poor"] = "poor"
    will: Literal["good", "poor"] = "poor"
    spellcasting_ability: Optional[str] = None


class FeatRecord(SrdRecord):
    """Feat with machine-readable combat benefits."""

    prerequisites: List[str] = Field(default_factory=list)
    # e.g. {"initiative": 4}, {"damage": 2}, {"capabilities": ["trip_without_aoo"]}
    benefits: Dict[str, Any] = Field(default_factory=dict)


class EquipmentRecord(SrdRecord):
    category: Literal["weapon", "armor", "shield", "gear"] = "gear"

    # Weapon
    damage: Optional[str] = None
    threat_range: int = Field(default=20, ge=2, le=20)
    critical_multiplier: int = Field(default=2, ge=2, le=4)
    damage_type: str = "bludgeoning"
    ranged: bool = False
    thrown: bool = False
    finesse: bool = False
    two_handed: bool = False
    reach: int = 5
    hardness: int = 10
    hit_points: int = 5

    # Armor / shield
    ac_bonus: int = 0
    max_dex_bonus: Optional[int] = None

    # Misc
    initiative_bonus: int = 0

    @field_validator("damage")
    @classmethod
    def check_damage(cls, value: Optional[str]) -> Optional[str]:
        return _check_dice(value)


class SpellRecord(SrdRecord):
    level: int = Field(default=0, ge=0, le=9)
    school: str = ""
    casting_time: Literal["standard", "full_round", "swift"] = "standard"
    damage: Optional[str] = None
    damage_type: Optional[str] = None
    healing: Optional[str] = None
    condition: Optional[str] = None
    condition_duration: Optional[int] = None
    save: Optional[Literal["fortitude", "reflex", "will"]] = None
    save_effect: Literal["negates", "half", "none"] = "negates"
    max_targets: int = 1

    @field_validator("damage", "healing")
    @classmethod
    def check_dice_fields(cls, value: Optional[str]) -> Optional[str]:
        return _check_dice(value)


class ClassLevel(BaseModel):
    name: str
    level: int = Field(default=1, ge=1, le=40)


class WeaponSpec(BaseModel):
    """Inline weapon definition"""

    name: str
    damage: str = "1d3"
    threat_range: int = Field(default=20, ge=2, le=20)
    critical_multiplier: int = Field(default=2, ge=2, le=4)
    damage_type: str = "bludgeoning"
    enhancement: int = 0
    ranged: bool = False
    thrown: bool = False
    finesse: bool = False
    two_handed: bool = False
    reach: int = 5
    properties: List[str] = Field(default_factory=list)

    @field_validator("damage")
    @classmethod
    def check_weapon_damage(cls, value: str) -> str:
        return _check_dice(value)


class CombatantSpec(BaseModel):
    """Dict-shaped combatant input for CombatEngine.initialize_combat"""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    name: str
    race: Optional[str] = None
    classes: List[ClassLevel] = Field(default_factory=list)
    abilities: Dict[str, int] = Field(default_factory=dict)
    hp: Optional[int] = None
    max_hp: int = Field(..., ge=1)
    base_attack_bonus: Optional[int] = None
    base_saves: Optional[Dict[str, int]] = None
    size: Optional[str] = None
    speed: Optional[int] = None
    weapon: Union[str, WeaponSpec, None] = None
    weapon_enhancement: int = 0
    armor: Optional[str] = None
    shield: Optional[str] = None
    natural_armor: int = 0
    deflection: int = 0
    feats: List[str] = Field(default_factory=list)
    capabilities: List[str] = Field(default_factory=list)
    damage_reduction: Optional[Dict[str, Any]] = None
    initiative_bonus: int = 0
    position: Optional[Dict[str, int]] = None
    caster_level: int = 0
    spell_slots: Dict[int, int] = Field(default_factory=dict)
    ai_personality: Optional[str] = None

    @field_validator("abilities")
    @classmethod
    def check_scores_positive(cls, value: Dict[str, int]) -> Dict[str, int]:
        for ability, score in value.items():
            if score < 1:
                raise ValueError(f"{ability} must be >= 1")
        return value
