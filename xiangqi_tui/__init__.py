"""Xiangqi engine layer, command parsing and prompt editing for a terminal board."""

__version__ = "0.1.0"