"""Combat error taxonomy."""


class CombatError(Exception):
    """Base class for combat engine errors."""


class CombatValidationError(CombatError, ValueError):
    """Malformed input: unknown combatant, bad action payload, inactive encounter."""


class UnknownConditionError(CombatValidationError):
    """A condition name that the registry does not define."""

    def __init__(self, name: str):
        super().__init__(f"Unknown condition: {name}")
        self.name = name


class UnsupportedActionError(CombatValidationError):
    """An action whose type has no handler."""


class UnknownManeuverError(CombatValidationError):
    """A combat maneuver name outside the maneuver table."""


class RuleViolation(CombatError):
    """
    The action is well formed but the rules forbid it right now.

    The executor turns this into a rejected ActionResult instead of
    propagating it.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ExternalFailure(CombatError, RuntimeError):
    """A collaborator (rules data, spellcasting) failed."""


class RulesDataError(ExternalFailure):
    """Rules data could not be loaded or validated."""
