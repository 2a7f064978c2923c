"""
Combat engine

Initiative, turn/round scheduling and end-of-combat detection.
"""
import copy
import logging
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Union

from ..config import Settings, settings as default_settings
from .ai_opponent import OpponentAI
from .calculator import initiative_modifier
from .combatant_factory import CombatantFactory
from .conditions import ConditionRegistry
from .data_repository import RulesDataRepository
from .dice import DiceRoller
from .errors import CombatValidationError
from .executor import ActionExecutor
from .models.action import Action, ActionResult
from .models.combatant import Combatant, Faction
from .models.encounter import CombatEncounter, EncounterSnapshot, EncounterStatus
from .rules import ATTACKS_OF_OPPORTUNITY_PER_ROUND, CombatRules
from .spatial import Position
from .spells import Spellcaster, SrdSpellcaster

logger = logging.getLogger(__name__)

CombatantInput = Union[Combatant, Mapping[str, Any]]


class ActionSource(Protocol):
    """Player UI or AI deciding a combatant's actions for one turn"""

    def choose_actions(self, snapshot: EncounterSnapshot, combatant_id: str) -> Sequence[Action]:
        ...


class CombatEngine:
    """
    Combat engine

    Responsibilities:
    - build encounters and roll initiative
    - run turns and rounds through the action executor
    - detect victory and defeat
    """

    def __init__(
        self,
        rules: Optional[CombatRules] = None,
        repository: Optional[RulesDataRepository] = None,
        dice: Optional[DiceRoller] = None,
        action_source: Optional[ActionSource] = None,
        spellcaster: Optional[Spellcaster] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.repository = repository or RulesDataRepository(self.config.srd_data_dir)
        self.rules = rules or CombatRules.from_repository(
            self.repository,
            consume_slot_on_disruption=self.config.consume_slot_on_disruption,
        )
        self.dice = dice or DiceRoller(seed=self.config.random_seed)
        self.registry = ConditionRegistry(self.rules.conditions)
        self.spellcaster = spellcaster or SrdSpellcaster(self.repository, self.dice)
        self.executor = ActionExecutor(
            self.rules,
            self.dice,
            registry=self.registry,
            spellcaster=self.spellcaster,
            repository=self.repository,
        )
        self.action_source = action_source or OpponentAI(self.rules)
        self.factory = CombatantFactory(self.repository, self.rules)
        self.encounters: Dict[str, CombatEncounter] = {}

    # ============================================
    # Public interface
    # ============================================

    def initialize_combat(
        self,
        party: Iterable[CombatantInput],
        enemies: Iterable[CombatantInput],
        environment: Optional[Dict[str, Any]] = None,
        encounter_id: Optional[str] = None,
    ) -> CombatEncounter:
        """
        Start a combat

        Args:
            party: pc side, Combatant objects (copied) or spec dicts
            enemies: npc side, same forms
            environment: opaque metadata; "obstacles" lists blocked squares

        Returns:
            CombatEncounter: active, in initiative order

        Steps:
        1. build combatants (pc first, then npc)
        2. assign missing positions
        3. roll initiative and sort (stable, descending)
        4. log combat_start
        """
        party = list(party)
        enemies = list(enemies)
        if not party or not enemies:
            raise CombatValidationError("Both party and enemies need at least one combatant")

        combatants = [self._prepare(entry, Faction.PC, i) for i, entry in enumerate(party)]
        combatants += [self._prepare(entry, Faction.NPC, i) for i, entry in enumerate(enemies)]

        seen = set()
        for combatant in combatants:
            if combatant.id in seen:
                raise CombatValidationError(f"Duplicate combatant id: {combatant.id}")
            seen.add(combatant.id)

        self._assign_positions(combatants)
        self._roll_initiative(combatants)
        # sorted() is stable with reverse=True: ties keep input order
        order = sorted(combatants, key=lambda c: c.initiative, reverse=True)

        encounter = CombatEncounter(
            encounter_id=encounter_id or f"combat_{uuid.uuid4().hex[:8]}",
            status=EncounterStatus.ACTIVE,
            combatants=order,
            environment=dict(environment or {}),
        )
        if encounter.encounter_id in self.encounters:
            raise CombatValidationError(f"Encounter already exists: {encounter.encounter_id}")
        encounter.add_event(
            "system",
            "Combat starts. Initiative order: " + ", ".join(c.id for c in order),
            event_type="combat_start",
            payload={"order": [{"id": c.id, "initiative": c.initiative} for c in order]},
        )
        self.encounters[encounter.encounter_id] = encounter
        logger.info("Encounter %s started with %d combatants", encounter.encounter_id, len(order))

        self.check_combat_end(encounter)
        return encounter

    def process_round(self, encounter: CombatEncounter) -> CombatEncounter:
        """Run every remaining turn of the current round."""
        self._require_active(encounter)
        while encounter.is_active and encounter.current_turn_index < len(encounter.combatants):
            combatant = encounter.combatants[encounter.current_turn_index]
            self.take_turn(encounter, combatant)
            encounter.current_turn_index += 1

        if encounter.is_active:
            encounter.add_event(
                "system",
                f"Round {encounter.current_round} ends",
                event_type="round_end",
            )
            encounter.current_round += 1
            encounter.current_turn_index = 0
        return encounter

    def take_turn(self, encounter: CombatEncounter, combatant: Combatant) -> List[ActionResult]:
        """
        One combatant's turn

        Defeated combatants get no actions, but their timed conditions still
        count down so that a sleeping holder wakes when the effect ends.
        Combatants with a no_actions condition get their start and end ticks
        but no actions.
        """
        self._require_active(encounter)
        if not encounter.contains(combatant):
            raise CombatValidationError(f"{combatant.id} is not part of encounter {encounter.encounter_id}")

        if combatant.is_defeated():
            encounter.add_event(
                combatant.id,
                f"{combatant.name} is defeated; turn skipped",
                event_type="turn_skipped",
                payload={"reason": "defeated"},
            )
            self._end_of_turn(encounter, combatant)
            return []

        self._start_of_turn(encounter, combatant)

        if self.registry.flag(combatant, "no_actions"):
            encounter.add_event(
                combatant.id,
                f"{combatant.name} cannot act; turn skipped",
                event_type="turn_skipped",
                payload={"reason": "conditions", "conditions": combatant.condition_names()},
            )
            self._end_of_turn(encounter, combatant)
            self.check_combat_end(encounter)
            return []

        combatant.economy.reset()
        encounter.add_event(combatant.id, f"{combatant.name}'s turn", event_type="turn_start")

        results: List[ActionResult] = []
        actions = self.action_source.choose_actions(encounter.snapshot(), combatant.id) or []
        for action in actions:
            if not encounter.is_active or combatant.is_defeated():
                break
            result = self.executor.execute(encounter, combatant, action)
            results.append(result)
            if not result.rejected:
                results.extend(self.executor.trigger_readied(encounter, result))
            self.check_combat_end(encounter)

        self._end_of_turn(encounter, combatant)
        self.check_combat_end(encounter)
        return results

    def check_combat_end(self, encounter: CombatEncounter) -> EncounterStatus:
        """
        Defeat when no pc stands, victory when no npc stands

        combat_end is logged once, on the transition.
        """
        if encounter.status != EncounterStatus.ACTIVE:
            return encounter.status

        pcs_standing = any(not c.is_defeated() for c in encounter.faction_members(Faction.PC))
        npcs_standing = any(not c.is_defeated() for c in encounter.faction_members(Faction.NPC))
        if not pcs_standing:
            encounter.status = EncounterStatus.DEFEAT
        elif not npcs_standing:
            encounter.status = EncounterStatus.VICTORY
        else:
            return encounter.status

        encounter.add_event(
            "system",
            f"Combat ends: {encounter.status.value}",
            event_type="combat_end",
            payload={"status": encounter.status.value, "round": encounter.current_round},
        )
        logger.info("Encounter %s ended: %s", encounter.encounter_id, encounter.status.value)
        return encounter.status

    def run_until_complete(
        self, encounter: CombatEncounter, max_rounds: Optional[int] = None
    ) -> EncounterStatus:
        """Process rounds until the encounter ends or max_rounds have run (0 = no limit)."""
        limit = max_rounds if max_rounds is not None else self.config.max_rounds
        rounds = 0
        while encounter.is_active:
            if limit and rounds >= limit:
                logger.info("Encounter %s stopped after %d rounds", encounter.encounter_id, rounds)
                break
            self.process_round(encounter)
            rounds += 1
        return encounter.status

    def get_encounter(self, encounter_id: str) -> Optional[CombatEncounter]:
        return self.encounters.get(encounter_id)

    def get_combat_summary(self, encounter_id: str) -> Dict[str, Any]:
        encounter = self.encounters.get(encounter_id)
        if encounter is None:
            raise CombatValidationError(f"Unknown encounter: {encounter_id}")
        return encounter.summary()

    def end_combat(self, encounter_id: str) -> Optional[CombatEncounter]:
        """Discard an encounter; returns it when it existed."""
        return self.encounters.pop(encounter_id, None)

    # ============================================
    # Internals
    # ============================================

    @staticmethod
    def _require_active(encounter: CombatEncounter) -> None:
        if not encounter.is_active:
            raise CombatValidationError(
                f"Encounter {encounter.encounter_id} is not active ({encounter.status.value})"
            )

    def _prepare(self, entry: CombatantInput, faction: Faction, index: int) -> Combatant:
        if isinstance(entry, Combatant):
            combatant = copy.deepcopy(entry)
            combatant.faction = faction
            return combatant
        if isinstance(entry, Mapping):
            return self.factory.build(entry, faction, index)
        raise CombatValidationError(f"Unsupported combatant input: {entry!r}")

    @staticmethod
    def _assign_positions(combatants: List[Combatant]) -> None:
        """Party in column 0, enemies in column 1, one row each."""
        rows = {Faction.PC: 0, Faction.NPC: 0}
        for combatant in combatants:
            if combatant.position is None:
                column = 0 if combatant.faction == Faction.PC else 1
                combatant.position = Position(column, rows[combatant.faction])
            rows[combatant.faction] += 1

    def _roll_initiative(self, combatants: List[Combatant]) -> None:
        for combatant in combatants:
            natural = self.dice.d20()
            modifier = initiative_modifier(combatant, self.rules)
            combatant.initiative = natural + modifier.total
            combatant.economy.reset()
            combatant.attacks_of_opportunity = ATTACKS_OF_OPPORTUNITY_PER_ROUND
            logger.debug(
                "%s initiative %d (d20=%d, %s)", combatant.id, combatant.initiative, natural, modifier.terms
            )

    def _start_of_turn(self, encounter: CombatEncounter, combatant: Combatant) -> None:
        expired = [m.source for m in combatant.temporary_modifiers]
        combatant.temporary_modifiers = []
        if combatant.readied is not None:
            expired.append(f"readied {combatant.readied.action.action_type.value}")
            combatant.readied = None
        expired.extend(self.registry.start_of_turn(combatant))
        combatant.attacks_of_opportunity = ATTACKS_OF_OPPORTUNITY_PER_ROUND
        if expired:
            encounter.add_event(
                combatant.id,
                f"Expired for {combatant.name}: {', '.join(expired)}",
                event_type="effects_expired",
                payload={"expired": expired},
            )

    def _end_of_turn(self, encounter: CombatEncounter, combatant: Combatant) -> None:
        expired = self.registry.end_of_turn(combatant)
        if expired:
            encounter.add_event(
                combatant.id,
                f"Conditions ended for {combatant.name}: {', '.join(expired)}",
                event_type="conditions_expired",
                payload={"expired": expired},
            )
