"""D&D 3.5 SRD rules and tactical combat engine."""

__version__ = "0.1.0"
