"""Mixcut: split one continuous recording into tagged tracks from a cue sheet."""

__version__ = "0.1.0"
