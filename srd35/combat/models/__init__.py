"""Data models for the combat system."""

from .combatant import (
    ABILITY_NAMES,
    AbilityScores,
    ActionCost,
    ActionEconomy,
    ArmorInputs,
    AttackKind,
    Combatant,
    DamageReduction,
    Faction,
    Size,
    TemporaryModifier,
    UNARMED_STRIKE,
    Weapon,
)
from .condition import NEXT_TURN, ConditionDefinition, ConditionEffects, ConditionInstance
from .action import (
    Action,
    ActionResult,
    ActionType,
    AttackOptions,
    AttackRoll,
    CastSpell,
    Charge,
    CombatManeuver,
    DamageBreakdown,
    DiceRoll,
    FullAttack,
    FullDefense,
    ManeuverType,
    MeleeAttack,
    Move,
    RangedAttack,
    ReadiedAction,
    ReadyAction,
    ReadyTrigger,
)
from .encounter import CombatEncounter, CombatLogEvent, EncounterSnapshot, EncounterStatus
from .srd import (
    ClassLevel,
    ClassRecord,
    CombatantSpec,
    EquipmentRecord,
    FeatRecord,
    RaceRecord,
    SpellRecord,
    WeaponSpec,
)

__all__ = [
    "ABILITY_NAMES",
    "AbilityScores",
    "ActionCost",
    "ActionEconomy",
    "ArmorInputs",
    "AttackKind",
    "Combatant",
    "DamageReduction",
    "Faction",
    "Size",
    "TemporaryModifier",
    "UNARMED_STRIKE",
    "Weapon",
    "NEXT_TURN",
    "ConditionDefinition",
    "ConditionEffects",
    "ConditionInstance",
    "Action",
    "ActionResult",
    "ActionType",
    "AttackOptions",
    "AttackRoll",
    "CastSpell",
    "Charge",
    "CombatManeuver",
    "DamageBreakdown",
    "DiceRoll",
    "FullAttack",
    "FullDefense",
    "ManeuverType",
    "MeleeAttack",
    "Move",
    "RangedAttack",
    "ReadiedAction",
    "ReadyAction",
    "ReadyTrigger",
    "CombatEncounter",
    "CombatLogEvent",
    "EncounterSnapshot",
    "EncounterStatus",
    "ClassLevel",
    "ClassRecord",
    "CombatantSpec",
    "EquipmentRecord",
    "FeatRecord",
    "RaceRecord",
    "SpellRecord",
    "WeaponSpec",
]
