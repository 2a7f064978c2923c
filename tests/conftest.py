import pytest

from srd35.combat.conditions import ConditionRegistry
from srd35.combat.data_repository import RulesDataRepository
from srd35.combat.dice import SequenceDiceRoller
from srd35.combat.executor import ActionExecutor
from srd35.combat.models.combatant import (
    AbilityScores,
    ArmorInputs,
    Combatant,
    Faction,
    Size,
    Weapon,
)
from srd35.combat.models.encounter import CombatEncounter, EncounterStatus
from srd35.combat.rules import CombatRules
from srd35.combat.spatial import Position
from srd35.combat.spells import SrdSpellcaster

LONGSWORD = Weapon(name="longsword", damage="1d8", threat_range=19, damage_type="slashing")
CLUB = Weapon(name="club", damage="1d6", damage_type="bludgeoning")


def _fighter(**overrides) -> Combatant:
    """BAB +5, Str 16, longsword, AC 10."""
    data = dict(
        id="fighter",
        name="Fighter",
        faction=Faction.PC,
        hp=30,
        max_hp=30,
        abilities=AbilityScores(strength=16),
        base_attack_bonus=5,
        weapon=LONGSWORD,
        position=Position(0, 0),
    )
    data.update(overrides)
    return Combatant(**data)


def _goblin(**overrides) -> Combatant:
    """Small, Dex 12, leather + light shield: AC 15. Attack +1 with a club."""
    data = dict(
        id="goblin",
        name="Goblin",
        faction=Faction.NPC,
        hp=20,
        max_hp=20,
        abilities=AbilityScores(strength=8, dexterity=12),
        base_attack_bonus=1,
        armor=ArmorInputs(armor_bonus=2, shield_bonus=1),
        size=Size.SMALL,
        weapon=CLUB,
        position=Position(1, 0),
    )
    data.update(overrides)
    return Combatant(**data)


def _wizard(**overrides) -> Combatant:
    data = dict(
        id="wizard",
        name="Wizard",
        faction=Faction.PC,
        hp=8,
        max_hp=8,
        abilities=AbilityScores(intelligence=16),
        caster_level=1,
        spell_slots={1: 2, 2: 1},
        position=Position(0, 1),
    )
    data.update(overrides)
    return Combatant(**data)


def _encounter(*combatants, environment=None) -> CombatEncounter:
    return CombatEncounter(
        encounter_id="enc_test",
        status=EncounterStatus.ACTIVE,
        combatants=list(combatants),
        environment=dict(environment or {}),
    )


@pytest.fixture
def make_fighter():
    return _fighter


@pytest.fixture
def make_goblin():
    return _goblin


@pytest.fixture
def make_wizard():
    return _wizard


@pytest.fixture
def make_encounter():
    return _encounter


@pytest.fixture
def rules():
    return CombatRules()


@pytest.fixture
def registry(rules):
    return ConditionRegistry(rules.conditions)


@pytest.fixture(scope="session")
def repository():
    """The packaged SRD data."""
    repo = RulesDataRepository()
    repo.preload()
    return repo


@pytest.fixture
def make_executor(rules, registry, repository):
    """Executor over scripted dice; returns (executor, dice)."""

    def _build(faces, **kwargs):
        dice = SequenceDiceRoller(faces)
        kwargs.setdefault("spellcaster", SrdSpellcaster(repository, dice))
        kwargs.setdefault("repository", repository)
        return ActionExecutor(rules, dice, registry=registry, **kwargs), dice

    return _build
