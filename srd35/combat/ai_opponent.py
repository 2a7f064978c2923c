"""
Opponent AI

Default action source: a small rule tree driven by personality settings.
"""
import logging
from typing import Any, List, Mapping, Optional

from .models.action import Action, Charge, FullAttack, FullDefense, MeleeAttack, Move, RangedAttack
from .models.combatant import Combatant
from .models.encounter import EncounterSnapshot
from .rules import CHARGE_MIN_DISTANCE, CombatRules
from .spatial import (
    Position,
    approach_square,
    distance_feet,
    line_squares,
    path_is_clear,
    within_reach,
)

logger = logging.getLogger(__name__)

FULL_ATTACK_MIN_BAB = 6


class OpponentAI:
    """
    Chooses actions for any combatant

    Rule order:
    1. stand up when prone
    2. full defense when hurt past the personality threshold
    3. ranged weapon -> ranged (full) attack
    4. foe in reach -> melee (full) attack
    5. charge when legal and the personality likes it
    6. otherwise move toward the target (and attack if that ends adjacent)
    """

    def __init__(self, rules: Optional[CombatRules] = None):
        self.rules = rules or CombatRules()

    def choose_actions(self, snapshot: EncounterSnapshot, combatant_id: str) -> List[Action]:
        me = snapshot.get_combatant(combatant_id)
        if me is None or me.position is None:
            return []
        personality = self.rules.personality(me.ai_personality)

        foes = [
            c for c in snapshot.combatants
            if c.is_hostile_to(me) and not c.is_defeated() and c.position is not None
        ]
        if not foes:
            return []

        actions: List[Action] = []
        prone = me.has_condition("prone")
        if prone:
            actions.append(Move(stand_up=True))

        if not prone and self._should_defend(me, personality):
            return [FullDefense()]

        weapon = me.active_weapon
        target = self._select_target(me, foes, personality)

        if weapon.ranged:
            if not prone and me.base_attack_bonus >= FULL_ATTACK_MIN_BAB:
                actions.append(FullAttack(target_id=target.id, ranged=True))
            else:
                actions.append(RangedAttack(target_id=target.id))
            return actions

        in_reach = [f for f in foes if within_reach(me.position, f.position, weapon.reach)]
        if in_reach:
            if target not in in_reach:
                target = self._select_target(me, in_reach, personality)
            if not prone and me.base_attack_bonus >= FULL_ATTACK_MIN_BAB:
                actions.append(FullAttack(target_id=target.id))
            else:
                actions.append(MeleeAttack(target_id=target.id))
            return actions

        if not prone and personality.get("charge", True) and self._can_charge(snapshot, me, target):
            actions.append(Charge(target_id=target.id))
            return actions

        destination = self._advance(snapshot, me, target)
        if destination is not None:
            actions.append(Move(destination=destination))
            if not prone and within_reach(destination, target.position, weapon.reach):
                actions.append(MeleeAttack(target_id=target.id))
        return actions

    # ===== Decisions =====

    @staticmethod
    def _should_defend(me: Combatant, personality: Mapping[str, Any]) -> bool:
        threshold = personality.get("defend_below", 0.0)
        if not threshold or me.max_hp <= 0:
            return False
        return me.hp / me.max_hp < threshold

    @staticmethod
    def _select_target(
        me: Combatant, foes: List[Combatant], personality: Mapping[str, Any]
    ) -> Combatant:
        if personality.get("prefer_weaker_targets", False):
            return min(foes, key=lambda foe: foe.hp)

        if personality.get("prefer_wounded_targets", False):
            wounded = [foe for foe in foes if foe.hp < foe.max_hp]
            if wounded:
                return min(wounded, key=lambda foe: foe.hp / foe.max_hp)

        # Default: nearest, ties by initiative order
        return min(foes, key=lambda foe: distance_feet(me.position, foe.position))

    @staticmethod
    def _blocked(snapshot: EncounterSnapshot, me: Combatant) -> set:
        return set(snapshot.occupied_squares(exclude=me)) | set(snapshot.obstacle_squares())

    def _can_charge(self, snapshot: EncounterSnapshot, me: Combatant, target: Combatant) -> bool:
        if any(c.effects.no_charge or c.effects.no_move for c in me.conditions):
            return False
        destination = approach_square(me.position, target.position)
        moved = distance_feet(me.position, destination)
        speed = me.speed // 2 if any(c.effects.half_speed for c in me.conditions) else me.speed
        if moved < CHARGE_MIN_DISTANCE or moved > 2 * speed:
            return False
        blocked = self._blocked(snapshot, me)
        blocked.discard(target.position)
        return path_is_clear(me.position, target.position, blocked)

    def _advance(
        self, snapshot: EncounterSnapshot, me: Combatant, target: Combatant
    ) -> Optional[Position]:
        """Furthest free square on the line toward target within speed."""
        if any(c.effects.no_move for c in me.conditions):
            return None
        speed = me.speed // 2 if any(c.effects.half_speed for c in me.conditions) else me.speed
        blocked = self._blocked(snapshot, me)
        best = None
        for square in line_squares(me.position, target.position)[1:-1]:
            if distance_feet(me.position, square) > speed:
                break
            if square in blocked:
                continue
            best = square
        return best
