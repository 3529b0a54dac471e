"""Run a playlist through a sequencer over simulated backends."""

import asyncio
from typing import Callable, Optional

from mediaseq.config.settings import Settings
from mediaseq.logging.config import get_logger
from mediaseq.playback import (
    PlayConfig,
    PlayerFactory,
    PlayersPool,
    Video,
    default_cue_times,
    playback_slot_producer,
)
from mediaseq.playback.simulated import PROVIDER, SimulatedAdapter
from mediaseq.playlist import Playlist, PlaylistEntry
from mediaseq.sequencer import Sequencer, SequencerConfig, SequencerState

logger = get_logger(__name__)

Reporter = Callable[[str], None]


def video_for(entry: PlaylistEntry) -> Video:
    return Video(provider=PROVIDER, id=entry.id)


def build_sequencer(
    playlist: Playlist,
    settings: Settings,
    report: Reporter,
    speed: float = 1.0,
    stopped: Optional[asyncio.Event] = None,
) -> Sequencer:
    """
    Wire a sequencer to simulated players for a playlist.

    Entries flagged `fail` are left out of the backend catalog so that
    loading them fails.

    Args:
        playlist: Entries to play
        settings: Transition, cue and fade settings
        report: Receives one human readable line per event
        speed: Simulated playback speed factor
        stopped: Event set once the sequencer stops

    Returns:
        Sequencer ready to play
    """
    if speed <= 0:
        raise ValueError(f"speed must be positive, got {speed}")

    catalog = {entry.id: entry.duration for entry in playlist.entries if not entry.fail}
    factory = PlayerFactory(
        {PROVIDER: lambda: SimulatedAdapter(catalog, speed=speed)},
        debug_duration=settings.debug_duration,
        fade_step=settings.fade_step,
    )
    pool = PlayersPool(factory)

    def state_changed(previous: SequencerState, state: SequencerState) -> None:
        report(f"[cyan]State:[/cyan] {previous.value} -> {state.value}")
        if state is SequencerState.STOPPED and stopped is not None:
            stopped.set()

    def coming_next(current: Optional[PlaylistEntry], upcoming: Optional[PlaylistEntry]) -> None:
        current_title = current.title if current else "-"
        upcoming_title = upcoming.title if upcoming else "-"
        report(f"[yellow]Coming next:[/yellow] {current_title} -> {upcoming_title}")

    def playing_changed(entry: PlaylistEntry) -> None:
        report(f"[green]Now playing:[/green] {entry.title}")

    def load_failed(entry: PlaylistEntry, error: BaseException) -> None:
        report(f"[red]Failed to load:[/red] {entry.title} ({error})")

    return Sequencer(
        SequencerConfig(
            next_entry_producer=playlist.next_entry,
            playback_slot_producer=playback_slot_producer(
                players_pool=pool,
                video_fetcher=video_for,
                cue_times=default_cue_times(settings),
                # fades run on the wall clock, media time runs `speed` times faster
                transition_duration=settings.transition_duration / speed,
                cue_interval=settings.cue_interval,
            ),
            state_changed=state_changed,
            coming_next=coming_next,
            playing_changed=playing_changed,
            load_failed=load_failed,
            play_config=PlayConfig(audio_gain=settings.audio_gain),
        )
    )


async def simulate_playlist(
    playlist: Playlist,
    settings: Settings,
    report: Reporter,
    speed: float = 1.0,
    start: int = 0,
) -> None:
    """Play the playlist from `start` until the sequencer stops."""
    if not 0 <= start < len(playlist):
        raise ValueError(f"start must be between 0 and {len(playlist) - 1}, got {start}")

    stopped = asyncio.Event()
    sequencer = build_sequencer(playlist, settings, report, speed=speed, stopped=stopped)

    logger.info(f"Simulating {len(playlist)} entries at x{speed}")
    sequencer.play()
    sequencer.skip(playlist.entries[start])

    await stopped.wait()
    await sequencer.join()
