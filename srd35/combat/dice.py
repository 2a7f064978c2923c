"""
Dice system

Standard dice notation parsing and rolling
"""
import logging
import random
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

_DICE_PATTERN = re.compile(r"^(\d*)d(\d+)([+-]\d+)?$")


@dataclass(frozen=True)
class DiceResult:
    """Outcome of one dice expression"""

    expression: str
    rolls: List[int] = field(default_factory=list)
    modifier: int = 0
    total: int = 0

    @property
    def natural(self) -> int:
        """Sum of the dice without the flat modifier."""
        return sum(self.rolls)


def parse_notation(expression: str):
    """
    Parse dice notation

    Args:
        expression: notation such as "1d20", "2d6", "3d8+2", "d20"

    Returns:
        (count, sides, modifier)
    """
    normalized = (expression or "").lower().replace(" ", "")
    match = _DICE_PATTERN.match(normalized)
    if not match:
        raise ValueError(f"Invalid dice notation: {expression}")

    count = int(match.group(1)) if match.group(1) else 1
    sides = int(match.group(2))
    modifier = int(match.group(3)) if match.group(3) else 0
    if count < 1 or sides < 1:
        raise ValueError(f"Invalid dice notation: {expression}")
    return count, sides, modifier


class DiceRoller:
    """Dice roller backed by a random.Random instance"""

    def __init__(self, rng: Optional[random.Random] = None, seed: Optional[int] = None):
        self.rng = rng or random.Random(seed)

    def roll_die(self, sides: int) -> int:
        """
        Roll a single die

        Args:
            sides: number of faces (20 for a d20)

        Returns:
            int: result between 1 and sides
        """
        return self.rng.randint(1, sides)

    def roll(self, expression: str) -> DiceResult:
        """
        Roll a dice expression

        Examples:
            >>> DiceRoller(seed=1).roll("2d6+3").total
        """
        count, sides, modifier = parse_notation(expression)
        rolls = [self.roll_die(sides) for _ in range(count)]
        result = DiceResult(
            expression=expression,
            rolls=rolls,
            modifier=modifier,
            total=sum(rolls) + modifier,
        )
        logger.debug("roll %s -> %s = %d", expression, rolls, result.total)
        return result

    def roll_with_modifier(self, expression: str, modifier: int) -> int:
        """Roll an expression and add an extra modifier."""
        return self.roll(expression).total + modifier

    def d20(self) -> int:
        return self.roll_die(20)


class SequenceDiceRoller(DiceRoller):
    """
    Deterministic dice that return scripted faces in order.

    Each die consumes one face regardless of its size, so "2d6" reads two
    faces. A face larger than the die, or running out of faces, raises
    ValueError.
    """

    def __init__(self, faces: Iterable[int]):
        super().__init__(rng=random.Random(0))
        self._faces = list(faces)
        self._index = 0

    @property
    def remaining(self) -> List[int]:
        return self._faces[self._index:]

    def extend(self, faces: Iterable[int]) -> None:
        self._faces.extend(faces)

    def roll_die(self, sides: int) -> int:
        if self._index >= len(self._faces):
            raise ValueError("Dice sequence exhausted")
        face = self._faces[self._index]
        if face < 1 or face > sides:
            raise ValueError(f"Scripted face {face} is not valid for a d{sides}")
        self._index += 1
        return face
