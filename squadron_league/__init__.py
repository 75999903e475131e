"""Squadron League: event lifecycle and scoring for a squadron karting league."""

__version__ = "1.0.0"
