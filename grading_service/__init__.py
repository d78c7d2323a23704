"""Grading service of the micro-learning system: quiz attempts, scoring and manual grading."""

__version__ = "1.0.0"
