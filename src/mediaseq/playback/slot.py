"""Playback slots: the lifecycle of one entry against one player."""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from mediaseq.config.settings import Settings
from mediaseq.logging.config import get_logger
from mediaseq.playback.players import Player
from mediaseq.playback.pool import PlayersPool
from mediaseq.playback.video import PlayConfig, Video

logger = get_logger(__name__)

VideoFetcher = Callable[[Any], Video]
CueCallback = Callable[[float], None]
CueTime = Callable[[float], float]


class SlotPhase(str, Enum):
    """Lifecycle phase of a playback slot."""

    CREATED = "created"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"
    PLAYING = "playing"
    ENDING = "ending"
    ENDED = "ended"


@dataclass(frozen=True)
class Cue:
    """A one-shot callback fired once playback reaches `time(duration)` seconds."""

    time: CueTime
    callback: CueCallback


@dataclass(frozen=True)
class Cues:
    ending_soon: Cue
    ending: Cue


@dataclass(frozen=True)
class CueTimes:
    """Cue positions as functions of the entry duration, without callbacks."""

    ending_soon: CueTime
    ending: CueTime

    def bind(self, ending_soon: CueCallback, ending: CueCallback) -> Cues:
        return Cues(
            ending_soon=Cue(time=self.ending_soon, callback=ending_soon),
            ending=Cue(time=self.ending, callback=ending),
        )


def default_cue_times(settings: Settings) -> CueTimes:
    """
    Build cue positions from settings.

    'ending' fires one transition before the end so that the crossfade
    overlaps the tail of the entry.
    """
    return CueTimes(
        ending_soon=lambda duration: max(duration - settings.ending_soon_offset, 0.0),
        ending=lambda duration: max(duration - settings.transition_duration, 0.0),
    )


class PlaybackSlot:
    """
    Manages one entry from player checkout to player release.

    load() and end() return memoized tasks: calling them again returns the
    same task, so any number of callers can await the outcome.
    """

    def __init__(
        self,
        entry: Any,
        players_pool: PlayersPool,
        video_fetcher: VideoFetcher,
        cues: Cues,
        transition_duration: float,
        cue_interval: float = 0.1,
    ):
        """
        Initialize playback slot.

        Args:
            entry: Entry this slot plays, never changes
            players_pool: Pool to check the player out from
            video_fetcher: Maps the entry to its playable reference
            cues: 'ending soon' and 'ending' cues
            transition_duration: Fade in / fade out duration in seconds
            cue_interval: Playback position polling interval in seconds
        """
        self.entry = entry
        self._players_pool = players_pool
        self._video_fetcher = video_fetcher
        self._cues = cues
        self._transition_duration = transition_duration
        self._cue_interval = cue_interval

        self._phase = SlotPhase.CREATED
        self._player: Optional[Player] = None
        self._suspended = False
        self._fading_out = False
        self._load_task: Optional[asyncio.Task] = None
        self._end_task: Optional[asyncio.Task] = None
        self._cue_task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"PlaybackSlot(entry={self.entry!r}, phase={self._phase.value})"

    @property
    def phase(self) -> SlotPhase:
        return self._phase

    @property
    def player(self) -> Optional[Player]:
        return self._player

    @property
    def suspended(self) -> bool:
        return self._suspended

    def load(self) -> asyncio.Task:
        """
        Check out a player and buffer the entry.

        The task fails with the backend error if the player cannot load the
        entry; the player is released before the failure propagates.
        """
        if self._load_task is None:
            self._phase = SlotPhase.LOADING
            self._load_task = asyncio.get_running_loop().create_task(self._load())
        return self._load_task

    async def _load(self) -> None:
        try:
            video = self._video_fetcher(self.entry)
            self._player = self._players_pool.get_player(video.provider)
            logger.debug(f"Loading {video.provider}:{video.id}")
            await self._player.load_by_id(video.id)
        except Exception:
            self._release_player()
            if self._phase is SlotPhase.LOADING:
                self._phase = SlotPhase.FAILED
            raise

        if self._phase is SlotPhase.LOADING:
            self._phase = SlotPhase.LOADED

    def start(self, play_config: Optional[PlayConfig] = None) -> None:
        """
        Play and fade in, then watch the cues.

        Raises:
            RuntimeError: If the slot has not finished loading
        """
        if self._phase is not SlotPhase.LOADED:
            raise RuntimeError(f"Cannot start {self!r}: load() has not resolved")

        self._phase = SlotPhase.PLAYING
        self._player.play(play_config or PlayConfig())
        self._player.fade_in(duration=self._transition_duration)
        if self._suspended:
            self._player.pause()

        logger.info(f"Started {self.entry!r}")
        self._cue_task = asyncio.get_running_loop().create_task(self._watch_cues())

    def suspend(self) -> None:
        self._suspended = True
        if self._audible():
            self._player.pause()

    def proceed(self) -> None:
        self._suspended = False
        if self._audible():
            self._player.resume()

    def end(self) -> asyncio.Task:
        """
        Fade out, stop and release the player.

        Whether the fade-out happens is decided here: a slot that is not
        playing, or is suspended, stops without fading.
        """
        if self._end_task is None:
            self._fading_out = self._phase is SlotPhase.PLAYING and not self._suspended
            self._phase = SlotPhase.ENDING
            self._cancel_cues()
            self._end_task = asyncio.get_running_loop().create_task(self._end())
        return self._end_task

    async def _end(self) -> None:
        if self._load_task is not None and not self._load_task.done():
            # the load outcome belongs to whoever awaits load()
            await asyncio.wait([self._load_task])

        player = self._player
        if player is not None:
            if self._fading_out:
                await player.fade_out(duration=self._transition_duration)
            player.stop()
            self._release_player()

        self._fading_out = False
        self._phase = SlotPhase.ENDED
        logger.debug(f"Ended {self.entry!r}")

    def _audible(self) -> bool:
        if self._player is None:
            return False
        return self._phase is SlotPhase.PLAYING or (
            self._phase is SlotPhase.ENDING and self._fading_out
        )

    def _release_player(self) -> None:
        player, self._player = self._player, None
        if player is not None:
            self._players_pool.release_player(player)

    def _cancel_cues(self) -> None:
        if self._cue_task is not None:
            self._cue_task.cancel()
            self._cue_task = None

    async def _watch_cues(self) -> None:
        """Poll the playback position and fire each cue once, in order."""
        loop = asyncio.get_running_loop()
        pending: List[Tuple[str, Cue]] = [
            ("ending soon", self._cues.ending_soon),
            ("ending", self._cues.ending),
        ]

        while pending:
            await asyncio.sleep(self._cue_interval)
            player = self._player
            if player is None:
                return

            duration = player.duration
            if duration is None:
                continue
            position = player.current_time

            # several cues can be crossed within one polling interval
            while pending and position >= pending[0][1].time(duration):
                name, cue = pending.pop(0)
                logger.debug(f"Cue '{name}' reached for {self.entry!r} at {position:.1f}s")
                loop.call_soon(cue.callback, duration)


def playback_slot_producer(
    players_pool: PlayersPool,
    video_fetcher: VideoFetcher,
    cue_times: CueTimes,
    transition_duration: float,
    cue_interval: float = 0.1,
) -> Callable[..., PlaybackSlot]:
    """
    Build the slot factory a Sequencer consumes.

    Returns:
        Callable taking (entry, ending_soon, ending) and returning a new slot
    """

    def produce(entry: Any, ending_soon: CueCallback, ending: CueCallback) -> PlaybackSlot:
        return PlaybackSlot(
            entry=entry,
            players_pool=players_pool,
            video_fetcher=video_fetcher,
            cues=cue_times.bind(ending_soon=ending_soon, ending=ending),
            transition_duration=transition_duration,
            cue_interval=cue_interval,
        )

    return produce
