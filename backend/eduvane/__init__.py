"""Eduvane learning-intelligence backend: Perception -> Interpretation -> Reasoning."""

__version__ = "0.1.0"
