"""
Combat encounter data model
"""
import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..errors import CombatValidationError
from ..spatial import Position
from .action import ActionResult
from .combatant import Combatant, Faction


class EncounterStatus(str, Enum):
    """Encounter lifecycle"""

    NOT_STARTED = "not_started"
    ACTIVE = "active"
    VICTORY = "victory"
    DEFEAT = "defeat"


@dataclass
class CombatLogEvent:
    """Structured, append-only combat event"""

    seq: int
    round: int
    actor_id: str
    event_type: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    payload: Optional[Dict[str, Any]] = None
    result: Optional[ActionResult] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "round": self.round,
            "actor": self.actor_id,
            "event_type": self.event_type,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload,
        }


def occupied_squares(combatants: List[Combatant], exclude: Optional[Combatant] = None) -> List[Position]:
    """Squares holding a creature that has not been killed."""
    return [
        c.position
        for c in combatants
        if c is not exclude and c.position is not None and not c.has_condition("dead")
    ]


def obstacle_squares(environment: Dict[str, Any]) -> List[Position]:
    """environment["obstacles"] as positions: Position, {"x": .., "y": ..} or (x, y) entries."""
    squares = []
    for entry in environment.get("obstacles") or []:
        if isinstance(entry, Position):
            squares.append(entry)
        elif isinstance(entry, dict):
            squares.append(Position(int(entry["x"]), int(entry["y"])))
        else:
            x, y = entry
            squares.append(Position(int(x), int(y)))
    return squares


@dataclass(frozen=True)
class EncounterSnapshot:
    """Read-only copy of an encounter handed to action sources"""

    encounter_id: str
    round: int
    combatants: List[Combatant]
    environment: Dict[str, Any]

    def get_combatant(self, combatant_id: str) -> Optional[Combatant]:
        for combatant in self.combatants:
            if combatant.id == combatant_id:
                return combatant
        return None

    def occupied_squares(self, exclude: Optional[Combatant] = None) -> List[Position]:
        return occupied_squares(self.combatants, exclude)

    def obstacle_squares(self) -> List[Position]:
        return obstacle_squares(self.environment)


@dataclass
class CombatEncounter:
    """
    One combat encounter

    Holds the initiative order, round/turn counters and the event log.
    """

    encounter_id: str
    status: EncounterStatus = EncounterStatus.NOT_STARTED

    # Initiative order
    combatants: List[Combatant] = field(default_factory=list)
    current_turn_index: int = 0
    current_round: int = 1

    # Opaque to the engine except for "obstacles"
    environment: Dict[str, Any] = field(default_factory=dict)

    # Event log
    event_log: List[CombatLogEvent] = field(default_factory=list)
    event_seq: int = 0
    event_sink: Optional[Callable[[CombatLogEvent], None]] = field(
        default=None, repr=False, compare=False
    )

    # ===== Lookup =====

    def get_combatant(self, combatant_id: str) -> Optional[Combatant]:
        for combatant in self.combatants:
            if combatant.id == combatant_id:
                return combatant
        return None

    def require_combatant(self, combatant_id: Optional[str]) -> Combatant:
        """Like get_combatant but fails fast on unknown ids."""
        combatant = self.get_combatant(combatant_id) if combatant_id else None
        if combatant is None:
            raise CombatValidationError(
                f"Combatant not in encounter {self.encounter_id}: {combatant_id}"
            )
        return combatant

    def contains(self, combatant: Combatant) -> bool:
        return any(existing is combatant for existing in self.combatants)

    def get_current_actor(self) -> Optional[Combatant]:
        if not self.combatants or self.current_turn_index >= len(self.combatants):
            return None
        return self.combatants[self.current_turn_index]

    def faction_members(self, faction: Faction) -> List[Combatant]:
        return [c for c in self.combatants if c.faction == faction]

    def occupied_squares(self, exclude: Optional[Combatant] = None) -> List[Position]:
        return occupied_squares(self.combatants, exclude)

    def obstacle_squares(self) -> List[Position]:
        return obstacle_squares(self.environment)

    @property
    def is_active(self) -> bool:
        return self.status == EncounterStatus.ACTIVE

    # ===== Event log =====

    def set_event_sink(self, sink: Optional[Callable[[CombatLogEvent], None]]):
        """Set a callback invoked for every appended event"""
        self.event_sink = sink

    def add_event(
        self,
        actor_id: str,
        message: str,
        event_type: str = "log",
        payload: Optional[Dict[str, Any]] = None,
        result: Optional[ActionResult] = None,
    ) -> CombatLogEvent:
        """Append a structured event"""
        self.event_seq += 1
        event = CombatLogEvent(
            seq=self.event_seq,
            round=self.current_round,
            actor_id=actor_id,
            event_type=event_type,
            message=message,
            payload=payload,
            result=result,
        )
        self.event_log.append(event)
        if self.event_sink:
            self.event_sink(event)
        return event

    def record_result(self, result: ActionResult) -> CombatLogEvent:
        """Append an ActionResult to the log"""
        event_type = "action_rejected" if result.rejected else result.action_type.value
        message = result.to_display_text() or f"{result.actor_id}: {result.action_type.value}"
        return self.add_event(
            result.actor_id,
            message,
            event_type=event_type,
            payload=result.to_dict(),
            result=result,
        )

    def events_of_type(self, event_type: str) -> List[CombatLogEvent]:
        return [event for event in self.event_log if event.event_type == event_type]

    def action_results(self) -> List[ActionResult]:
        return [event.result for event in self.event_log if event.result is not None]

    def get_event_log_since(self, since_seq: int = 0, limit: int = 100) -> List[CombatLogEvent]:
        events = [event for event in self.event_log if event.seq > since_seq]
        return events[:limit]

    # ===== Views =====

    def snapshot(self) -> EncounterSnapshot:
        return EncounterSnapshot(
            encounter_id=self.encounter_id,
            round=self.current_round,
            combatants=copy.deepcopy(self.combatants),
            environment=copy.deepcopy(self.environment),
        )

    def summary(self) -> Dict[str, Any]:
        """Compact encounter summary"""
        return {
            "id": self.encounter_id,
            "status": self.status.value,
            "round": self.current_round,
            "combatants": [
                {
                    "id": c.id,
                    "name": c.name,
                    "faction": c.faction.value,
                    "hp": c.hp,
                    "conditions": c.condition_names(),
                }
                for c in self.combatants
            ],
            "log_entries": len(self.event_log),
        }

    def to_dict(self) -> Dict[str, Any]:
        current = self.get_current_actor()
        return {
            "encounter_id": self.encounter_id,
            "status": self.status.value,
            "round": self.current_round,
            "current_turn": current.id if current else None,
            "combatants": [c.to_dict() for c in self.combatants],
            "event_log": [event.to_dict() for event in self.event_log[-10:]],
        }
