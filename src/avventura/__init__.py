"""Avventura: story graph toolkit for a branching text adventure."""

__version__ = "0.3.0"
