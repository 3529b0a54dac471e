"""Playback sequencing: roles, states and the sequencer itself."""

from mediaseq.sequencer.references import EndingSlots, RoleReference
from mediaseq.sequencer.sequencer import Sequencer, SequencerConfig
from mediaseq.sequencer.states import SequencerState

__all__ = ["EndingSlots", "RoleReference", "Sequencer", "SequencerConfig", "SequencerState"]
