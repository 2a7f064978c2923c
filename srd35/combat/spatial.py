"""Battle grid helpers (5-foot squares)."""
from dataclasses import dataclass
from typing import Iterable, List, Set, Tuple

SQUARE_FEET = 5


@dataclass(frozen=True)
class Position:
    """Grid square coordinates."""

    x: int
    y: int

    def to_dict(self):
        return {"x": self.x, "y": self.y}


def distance_feet(a: Position, b: Position) -> int:
    """
    Grid distance in feet.

    Diagonals alternate 5 and 10 feet, so n diagonal steps cost
    5 * (n + n // 2).
    """
    dx = abs(a.x - b.x)
    dy = abs(a.y - b.y)
    diagonal = min(dx, dy)
    straight = max(dx, dy) - diagonal
    return SQUARE_FEET * (straight + diagonal + diagonal // 2)


def is_adjacent(a: Position, b: Position) -> bool:
    return a != b and max(abs(a.x - b.x), abs(a.y - b.y)) <= 1


def within_reach(a: Position, b: Position, reach_feet: int) -> bool:
    if a == b:
        return False
    if reach_feet <= SQUARE_FEET:
        return is_adjacent(a, b)
    return distance_feet(a, b) <= reach_feet


def line_squares(start: Position, end: Position) -> List[Position]:
    """Squares crossed by a straight line from start to end (Bresenham), both ends included."""
    x0, y0, x1, y1 = start.x, start.y, end.x, end.y
    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx + dy
    squares = []
    while True:
        squares.append(Position(x0, y0))
        if x0 == x1 and y0 == y1:
            break
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x0 += sx
        if e2 <= dx:
            err += dx
            y0 += sy
    return squares


def approach_square(start: Position, target: Position) -> Position:
    """The square adjacent to target on the straight line from start."""
    squares = line_squares(start, target)
    if len(squares) < 2:
        return start
    return squares[-2]


def path_is_clear(
    start: Position, end: Position, blocked: Iterable[Position]
) -> bool:
    """True when no blocked square lies strictly between start and end."""
    blocked_set: Set[Position] = set(blocked)
    return not any(square in blocked_set for square in line_squares(start, end)[1:-1])


def push_away(origin: Position, square: Position, squares: int) -> List[Position]:
    """Squares a creature at `square` passes when pushed directly away from origin."""
    step: Tuple[int, int] = (
        (square.x > origin.x) - (square.x < origin.x),
        (square.y > origin.y) - (square.y < origin.y),
    )
    if step == (0, 0):
        step = (1, 0)
    return [
        Position(square.x + step[0] * n, square.y + step[1] * n)
        for n in range(1, squares + 1)
    ]
