"""Playable references and playback parameters."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Video:
    """Concrete playable reference for an entry: which backend and which media."""

    provider: str
    id: str


@dataclass(frozen=True)
class PlayConfig:
    """Parameters applied when a player starts."""

    audio_gain: float = 1.0

    def __post_init__(self) -> None:
        if not 0 <= self.audio_gain <= 1:
            raise ValueError(f"audio_gain must be between 0 and 1, got {self.audio_gain}")
