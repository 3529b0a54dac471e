"""Mediaseq - crossfading playback sequencer for interchangeable media backends."""

__version__ = "0.1.0"
