"""timebox: time-boxed personal task engine."""

__version__ = "0.1.0"
