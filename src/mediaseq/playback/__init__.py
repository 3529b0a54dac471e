"""Playback backends, players and playback slots."""

from mediaseq.playback.players import NativePlayerAdapter, Player, PlayerFactory
from mediaseq.playback.pool import PlayersPool, PoolOwnershipError
from mediaseq.playback.slot import (
    Cue,
    Cues,
    CueTimes,
    PlaybackSlot,
    SlotPhase,
    default_cue_times,
    playback_slot_producer,
)
from mediaseq.playback.video import PlayConfig, Video

__all__ = [
    "Cue",
    "Cues",
    "CueTimes",
    "NativePlayerAdapter",
    "PlayConfig",
    "PlaybackSlot",
    "Player",
    "PlayerFactory",
    "PlayersPool",
    "PoolOwnershipError",
    "SlotPhase",
    "Video",
    "default_cue_times",
    "playback_slot_producer",
]
