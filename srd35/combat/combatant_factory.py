"""Combatant spec dicts -> engine Combatants, resolved through the rules data."""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from .calculator import base_attack_bonus_for, base_save_for
from .data_repository import RulesDataRepository
from .errors import CombatValidationError
from .models.combatant import (
    ABILITY_NAMES,
    AbilityScores,
    ArmorInputs,
    Combatant,
    DamageReduction,
    Faction,
    Size,
    Weapon,
)
from .models.srd import CombatantSpec, EquipmentRecord, WeaponSpec
from .rules import CombatRules, slugify
from .spatial import Position

logger = logging.getLogger(__name__)

SAVES = ("fortitude", "reflex", "will")


class CombatantFactory:
    """Builds Combatants from dict specs validated by CombatantSpec"""

    def __init__(self, repository: RulesDataRepository, rules: CombatRules):
        self.repository = repository
        self.rules = rules

    def build(
        self,
        data: Union[Mapping[str, Any], CombatantSpec],
        faction: Faction,
        index: int = 0,
    ) -> Combatant:
        spec = self._validate(data)
        combatant_id = spec.id or f"{faction.value}_{index + 1}"

        size, speed, adjustments = self._race_traits(spec)
        abilities = self._abilities(spec, adjustments)
        base_attack_bonus, base_saves, casting_ability, class_caster_level = self._class_progression(spec)
        armor, initiative_bonus = self._armor(spec)
        feats = self._feats(spec)

        capabilities = set(spec.capabilities)
        capabilities.update(self.rules.capabilities_for(feats))

        combatant = Combatant(
            id=combatant_id,
            name=spec.name,
            faction=faction,
            hp=spec.hp if spec.hp is not None else spec.max_hp,
            max_hp=spec.max_hp,
            abilities=abilities,
            base_attack_bonus=base_attack_bonus,
            base_saves=base_saves,
            armor=armor,
            size=size,
            speed=speed,
            weapon=self._weapon(spec),
            feats=feats,
            capabilities=capabilities,
            damage_reduction=self._damage_reduction(spec),
            initiative_bonus=spec.initiative_bonus + initiative_bonus,
            position=self._position(spec),
            caster_level=spec.caster_level or class_caster_level,
            spellcasting_ability=casting_ability,
            spell_slots=dict(spec.spell_slots),
            ai_personality=spec.ai_personality,
        )
        logger.debug("Built combatant %s (%s)", combatant.id, faction.value)
        return combatant

    # ===== Validation =====

    @staticmethod
    def _validate(data: Union[Mapping[str, Any], CombatantSpec]) -> CombatantSpec:
        if isinstance(data, CombatantSpec):
            return data
        try:
            return CombatantSpec.model_validate(dict(data))
        except ValidationError as exc:
            raise CombatValidationError(f"Invalid combatant spec: {exc}") from exc
        except (TypeError, ValueError) as exc:
            raise CombatValidationError(f"Invalid combatant spec: {data!r}") from exc

    # ===== Race and class =====

    def _race_traits(self, spec: CombatantSpec) -> Tuple[Size, int, Dict[str, int]]:
        race = None
        if spec.race:
            race = self.repository.get_race(spec.race)
            if race is None:
                raise CombatValidationError(f"Unknown race: {spec.race}")

        size_name = spec.size or (race.size if race else Size.MEDIUM.value)
        try:
            size = Size(size_name.lower())
        except ValueError:
            raise CombatValidationError(f"Unknown size: {size_name}") from None
        speed = spec.speed if spec.speed is not None else (race.speed if race else 30)
        adjustments = dict(race.ability_adjustments) if race else {}
        return size, speed, adjustments

    @staticmethod
    def _abilities(spec: CombatantSpec, adjustments: Dict[str, int]) -> AbilityScores:
        scores = {name: 10 for name in ABILITY_NAMES}
        for source in (spec.abilities, adjustments):
            for name in source:
                if name not in scores:
                    raise CombatValidationError(f"Unknown ability: {name}")
        scores.update(spec.abilities)
        for name, delta in adjustments.items():
            scores[name] = max(1, scores[name] + delta)
        return AbilityScores(**scores)

    def _class_progression(self, spec: CombatantSpec):
        base_attack_bonus = 0
        saves = {save: 0 for save in SAVES}
        casting_ability: Optional[str] = None
        caster_level = 0

        for class_level in spec.classes:
            record = self.repository.get_class(class_level.name)
            if record is None:
                raise CombatValidationError(f"Unknown class: {class_level.name}")
            base_attack_bonus += base_attack_bonus_for(record.base_attack_bonus, class_level.level)
            for save in SAVES:
                saves[save] += base_save_for(getattr(record, save), class_level.level)
            if record.spellcasting_ability:
                casting_ability = casting_ability or record.spellcasting_ability
                caster_level += class_level.level

        if spec.base_attack_bonus is not None:
            base_attack_bonus = spec.base_attack_bonus
        if spec.base_saves is not None:
            unknown = set(spec.base_saves) - set(SAVES)
            if unknown:
                raise CombatValidationError(f"Unknown saving throws: {sorted(unknown)}")
            saves.update(spec.base_saves)
        return base_attack_bonus, saves, casting_ability or "intelligence", caster_level

    # ===== Equipment =====

    def _equipment(self, name: str, category: str) -> EquipmentRecord:
        record = self.repository.get_equipment(name)
        if record is None:
            raise CombatValidationError(f"Unknown equipment: {name}")
        if record.category != category:
            raise CombatValidationError(f"{record.name} is not a {category} ({record.category})")
        return record

    def _weapon(self, spec: CombatantSpec) -> Optional[Weapon]:
        if spec.weapon is None:
            return None
        if isinstance(spec.weapon, WeaponSpec):
            inline = spec.weapon
            return Weapon(
                name=inline.name,
                damage=inline.damage,
                threat_range=inline.threat_range,
                critical_multiplier=inline.critical_multiplier,
                damage_type=inline.damage_type,
                enhancement=inline.enhancement or spec.weapon_enhancement,
                ranged=inline.ranged,
                thrown=inline.thrown,
                finesse=inline.finesse,
                two_handed=inline.two_handed,
                reach=inline.reach,
                properties=frozenset(inline.properties),
            )

        record = self._equipment(spec.weapon, "weapon")
        return Weapon(
            name=record.name,
            damage=record.damage or "1d3",
            threat_range=record.threat_range,
            critical_multiplier=record.critical_multiplier,
            damage_type=record.damage_type,
            enhancement=spec.weapon_enhancement,
            ranged=record.ranged,
            thrown=record.thrown,
            finesse=record.finesse,
            two_handed=record.two_handed,
            reach=record.reach,
            hardness=record.hardness,
            hit_points=record.hit_points,
        )

    def _armor(self, spec: CombatantSpec) -> Tuple[ArmorInputs, int]:
        armor_bonus = 0
        shield_bonus = 0
        max_dex_bonus: Optional[int] = None
        initiative_bonus = 0

        if spec.armor:
            record = self._equipment(spec.armor, "armor")
            armor_bonus = record.ac_bonus
            max_dex_bonus = record.max_dex_bonus
            initiative_bonus += record.initiative_bonus
        if spec.shield:
            record = self._equipment(spec.shield, "shield")
            shield_bonus = record.ac_bonus
            if record.max_dex_bonus is not None:
                max_dex_bonus = (
                    record.max_dex_bonus
                    if max_dex_bonus is None
                    else min(max_dex_bonus, record.max_dex_bonus)
                )
            initiative_bonus += record.initiative_bonus

        armor = ArmorInputs(
            armor_bonus=armor_bonus,
            shield_bonus=shield_bonus,
            max_dex_bonus=max_dex_bonus,
            natural_armor=spec.natural_armor,
            deflection=spec.deflection,
        )
        return armor, initiative_bonus

    # ===== Feats and defenses =====

    def _feats(self, spec: CombatantSpec):
        feats = set()
        for name in spec.feats:
            record = self.repository.get_feat(name)
            if record is None:
                raise CombatValidationError(f"Unknown feat: {name}")
            feats.add(record.id or slugify(record.name))
        return feats

    @staticmethod
    def _position(spec: CombatantSpec) -> Optional[Position]:
        if not spec.position:
            return None
        try:
            return Position(int(spec.position["x"]), int(spec.position["y"]))
        except KeyError as exc:
            raise CombatValidationError(f"Position needs x and y: {spec.position!r}") from exc

    @staticmethod
    def _damage_reduction(spec: CombatantSpec) -> Optional[DamageReduction]:
        if not spec.damage_reduction:
            return None
        data = spec.damage_reduction
        try:
            return DamageReduction(amount=int(data["amount"]), type=str(data.get("type", "-")))
        except (KeyError, TypeError, ValueError) as exc:
            raise CombatValidationError(f"Invalid damage reduction: {data!r}") from exc
