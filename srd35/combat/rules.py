"""
Combat rules (D&D 3.5 SRD)

Constants, condition and maneuver tables, and the immutable CombatRules
configuration that every component receives by injection.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from .models.combatant import Size
from .models.condition import ConditionDefinition, ConditionEffects

if TYPE_CHECKING:
    from .data_repository import RulesDataRepository

logger = logging.getLogger(__name__)


# ============================================
# Constants
# ============================================

CRITICAL_HIT_ROLL = 20
CRITICAL_MISS_ROLL = 1

ITERATIVE_PENALTY = 5
MAX_ITERATIVE_ATTACKS = 4

CHARGE_ATTACK_BONUS = 2
CHARGE_AC_PENALTY = -2
CHARGE_MIN_DISTANCE = 10

FULL_DEFENSE_AC_BONUS = 4
FIGHTING_DEFENSIVELY_ATTACK_PENALTY = -4
FIGHTING_DEFENSIVELY_AC_BONUS = 2
COMBAT_EXPERTISE_MAX = 5

DEATH_THRESHOLD = -10
MINIMUM_DAMAGE = 1

CONCENTRATION_BASE_DC = 15
ATTACKS_OF_OPPORTUNITY_PER_ROUND = 1

BULL_RUSH_BASE_PUSH_FEET = 5


# ============================================
# Size tables
# ============================================

SIZE_MODIFIERS: Mapping[Size, int] = MappingProxyType(
    {
        Size.FINE: 8,
        Size.DIMINUTIVE: 4,
        Size.TINY: 2,
        Size.SMALL: 1,
        Size.MEDIUM: 0,
        Size.LARGE: -1,
        Size.HUGE: -2,
        Size.GARGANTUAN: -4,
        Size.COLOSSAL: -8,
    }
)

# Grapple, bull rush, overrun and trip use the special modifier instead
SPECIAL_SIZE_MODIFIERS: Mapping[Size, int] = MappingProxyType(
    {
        Size.FINE: -16,
        Size.DIMINUTIVE: -12,
        Size.TINY: -8,
        Size.SMALL: -4,
        Size.MEDIUM: 0,
        Size.LARGE: 4,
        Size.HUGE: 8,
        Size.GARGANTUAN: 12,
        Size.COLOSSAL: 16,
    }
)


# ============================================
# Conditions
# ============================================


def _condition(name: str, description: str, exclusive: bool = False, **effects: Any):
    return ConditionDefinition(
        name=name,
        effects=ConditionEffects(**effects),
        exclusive=exclusive,
        description=description,
    )


DEFAULT_CONDITIONS: Tuple[ConditionDefinition, ...] = (
    _condition("blinded", "Cannot see; -2 AC, half speed, -4 on Str/Dex skills.",
               ac=-2, half_speed=True, skills=-4),
    _condition("confused", "Acts randomly."),
    _condition("dazed", "Can take no actions.", no_actions=True),
    _condition("dead", "Killed.", exclusive=True, no_actions=True, helpless=True, no_move=True),
    _condition("entangled", "-2 attack, -4 Dex, half speed, cannot charge.",
               attack=-2, dexterity=-4, half_speed=True, no_charge=True),
    _condition("exhausted", "-6 Str and Dex, half speed.",
               strength=-6, dexterity=-6, half_speed=True, no_charge=True),
    _condition("fatigued", "-2 Str and Dex, cannot charge.",
               strength=-2, dexterity=-2, no_charge=True),
    _condition("flat-footed", "Has not acted yet; no Dex bonus to AC.", loses_dex_to_ac=True),
    _condition("frightened", "-2 attack, saves and skill checks.",
               attack=-2, saves=-2, skills=-2),
    _condition("grappled", "Held; cannot move or charge.", no_move=True, no_charge=True),
    _condition("hasted", "+1 attack, AC and Reflex.", attack=1, ac=1, reflex=1),
    _condition("helpless", "Bound, asleep or otherwise at an opponent's mercy.",
               helpless=True, no_actions=True, ac_vs_melee=-4),
    _condition("invisible", "+2 on attack rolls.", attack=2),
    _condition("nauseated", "Cannot attack, cast spells or charge.",
               no_spells=True, no_charge=True),
    _condition("paralyzed", "Frozen in place; helpless.",
               no_actions=True, helpless=True, loses_dex_to_ac=True, no_move=True,
               ac_vs_melee=-4),
    _condition("prone", "-4 melee attack; -4 AC vs melee, +4 AC vs ranged.",
               melee_attack=-4, ac_vs_melee=-4, ac_vs_ranged=4, no_charge=True),
    _condition("shaken", "-2 attack, saves and skill checks.",
               attack=-2, saves=-2, skills=-2),
    _condition("sickened", "-2 attack, saves and skill checks.",
               attack=-2, saves=-2, skills=-2),
    _condition("slowed", "-1 attack, AC and Reflex, half speed.",
               attack=-1, ac=-1, reflex=-1, half_speed=True),
    _condition("stunned", "Drops everything held; -2 AC, no actions.",
               ac=-2, no_actions=True),
    _condition("unconscious", "Knocked out and helpless.", exclusive=True,
               no_actions=True, helpless=True, no_move=True, ac_vs_melee=-4),
)


# ============================================
# Combat maneuvers
# ============================================


@dataclass(frozen=True)
class ManeuverDefinition:
    """How a maneuver is checked and whether it provokes"""

    name: str
    check: str  # "strength", "attack" or "grapple"
    provokes_aoo: bool = True
    description: str = ""


DEFAULT_MANEUVERS: Tuple[ManeuverDefinition, ...] = (
    ManeuverDefinition("bull_rush", "strength", True, "Push the defender back."),
    ManeuverDefinition("disarm", "attack", True, "Knock the held weapon away."),
    ManeuverDefinition("escape_grapple", "grapple", False, "Break free of the defender's hold."),
    ManeuverDefinition("grapple", "grapple", True, "Seize and hold the defender."),
    ManeuverDefinition("overrun", "strength", False, "Move through and knock down."),
    ManeuverDefinition("sunder", "attack", True, "Strike the held weapon."),
    ManeuverDefinition("trip", "strength", True, "Knock the defender prone."),
)


# ============================================
# Feats
# ============================================

DEFAULT_INITIATIVE_FEATS: Dict[str, int] = {
    "improved_initiative": 4,
}

DEFAULT_DAMAGE_FEATS: Dict[str, int] = {
    "weapon_specialization": 2,
}

DEFAULT_ATTACK_FEATS: Dict[str, int] = {
    "weapon_focus": 1,
}


# ============================================
# AI personalities
# ============================================

AI_PERSONALITIES: Dict[str, Dict[str, Any]] = {
    "aggressive": {
        "prefer_weaker_targets": False,
        "prefer_wounded_targets": False,
        "charge": True,
        "defend_below": 0.0,
    },
    "cowardly": {
        "prefer_weaker_targets": True,
        "charge": False,
        "defend_below": 0.3,  # full defense when hp ratio drops below
    },
    "pack_hunter": {
        "prefer_wounded_targets": True,
        "charge": True,
        "defend_below": 0.0,
    },
    "defensive": {
        "prefer_weaker_targets": False,
        "charge": False,
        "defend_below": 0.5,
    },
}

DEFAULT_PERSONALITY = "aggressive"


def slugify(value: str) -> str:
    """Lower-case identifier used for feat, record and capability lookups."""
    text = (value or "").strip().lower()
    if not text:
        return ""
    out = []
    for ch in text:
        if ch.isalnum() or ch in ("_", "-"):
            out.append(ch)
        elif ch.isspace() or ch in ("/", "\\", ":", "|", "."):
            out.append("_")
    slug = "".join(out).strip("_").replace("-", "_")
    while "__" in slug:
        slug = slug.replace("__", "_")
    return slug


def _frozen(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class CombatRules:
    """
    Immutable rules configuration

    Built once at process start and passed by reference into the
    calculator, registry, resolvers, executor and engine.
    """

    conditions: Mapping[str, ConditionDefinition] = field(
        default_factory=lambda: _frozen({c.name: c for c in DEFAULT_CONDITIONS})
    )
    maneuvers: Mapping[str, ManeuverDefinition] = field(
        default_factory=lambda: _frozen({m.name: m for m in DEFAULT_MANEUVERS})
    )
    initiative_feats: Mapping[str, int] = field(
        default_factory=lambda: _frozen(DEFAULT_INITIATIVE_FEATS)
    )
    damage_feats: Mapping[str, int] = field(default_factory=lambda: _frozen(DEFAULT_DAMAGE_FEATS))
    attack_feats: Mapping[str, int] = field(default_factory=lambda: _frozen(DEFAULT_ATTACK_FEATS))
    feat_capabilities: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: _frozen({})
    )
    ai_personalities: Mapping[str, Mapping[str, Any]] = field(
        default_factory=lambda: _frozen(AI_PERSONALITIES)
    )
    consume_slot_on_disruption: bool = True

    # ===== Lookups =====

    def feat_bonus(self, table: Mapping[str, int], feats) -> int:
        return sum(table.get(slugify(feat), 0) for feat in feats)

    def initiative_bonus(self, feats) -> int:
        return self.feat_bonus(self.initiative_feats, feats)

    def damage_bonus(self, feats) -> int:
        return self.feat_bonus(self.damage_feats, feats)

    def attack_bonus(self, feats) -> int:
        return self.feat_bonus(self.attack_feats, feats)

    def capabilities_for(self, feats) -> Tuple[str, ...]:
        granted = []
        for feat in feats:
            granted.extend(self.feat_capabilities.get(slugify(feat), ()))
        return tuple(dict.fromkeys(granted))

    def personality(self, name: Optional[str]) -> Mapping[str, Any]:
        return self.ai_personalities.get(
            name or DEFAULT_PERSONALITY, self.ai_personalities[DEFAULT_PERSONALITY]
        )

    def with_maneuver(self, definition: ManeuverDefinition) -> "CombatRules":
        """A copy with one maneuver definition replaced."""
        maneuvers = dict(self.maneuvers)
        maneuvers[definition.name] = definition
        return replace(self, maneuvers=_frozen(maneuvers))

    # ===== Construction =====

    @classmethod
    def from_repository(
        cls,
        repository: "RulesDataRepository",
        consume_slot_on_disruption: bool = True,
    ) -> "CombatRules":
        """
        Build the feat tables from FeatRecord.benefits

        Recognised benefit keys: "initiative", "damage", "attack" (ints)
        and "capabilities" (list of capability strings). Feats absent from
        the data keep the built-in defaults.
        """
        initiative = dict(DEFAULT_INITIATIVE_FEATS)
        damage = dict(DEFAULT_DAMAGE_FEATS)
        attack = dict(DEFAULT_ATTACK_FEATS)
        capabilities: Dict[str, Tuple[str, ...]] = {}

        for feat in repository.list_feats():
            key = slugify(feat.id or feat.name)
            benefits = feat.benefits
            if "initiative" in benefits:
                initiative[key] = int(benefits["initiative"])
            if "damage" in benefits:
                damage[key] = int(benefits["damage"])
            if "attack" in benefits:
                attack[key] = int(benefits["attack"])
            if benefits.get("capabilities"):
                capabilities[key] = tuple(str(c) for c in benefits["capabilities"])

        logger.debug(
            "CombatRules built: %d initiative, %d damage, %d attack feats",
            len(initiative),
            len(damage),
            len(attack),
        )
        return cls(
            initiative_feats=_frozen(initiative),
            damage_feats=_frozen(damage),
            attack_feats=_frozen(attack),
            feat_capabilities=_frozen(capabilities),
            consume_slot_on_disruption=consume_slot_on_disruption,
        )
