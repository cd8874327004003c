"""Pair Bracket - group stage and knockout progression for doubles tournaments."""

__version__ = "0.1.0"
