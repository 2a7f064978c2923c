"""Combat system package."""

from .ai_opponent import OpponentAI
from .combat_engine import ActionSource, CombatEngine
from .conditions import ConditionRegistry
from .data_repository import RulesDataRepository
from .dice import DiceRoller, SequenceDiceRoller
from .errors import (
    CombatError,
    CombatValidationError,
    ExternalFailure,
    RuleViolation,
    RulesDataError,
    UnknownConditionError,
    UnknownManeuverError,
    UnsupportedActionError,
)
from .executor import ActionExecutor
from .rules import CombatRules
from .spells import SpellCastResult, SpellEffect, Spellcaster, SrdSpellcaster

__all__ = [
    "ActionExecutor",
    "ActionSource",
    "CombatEngine",
    "CombatError",
    "CombatRules",
    "CombatValidationError",
    "ConditionRegistry",
    "DiceRoller",
    "ExternalFailure",
    "OpponentAI",
    "RuleViolation",
    "RulesDataError",
    "RulesDataRepository",
    "SequenceDiceRoller",
    "SpellCastResult",
    "SpellEffect",
    "Spellcaster",
    "SrdSpellcaster",
    "UnknownConditionError",
    "UnknownManeuverError",
    "UnsupportedActionError",
]
