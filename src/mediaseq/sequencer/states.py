"""Sequencer states."""

from enum import Enum


class SequencerState(str, Enum):
    """Global play / pause intent of a sequencer."""

    PRISTINE = "pristine"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
