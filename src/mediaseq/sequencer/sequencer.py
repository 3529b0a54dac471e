"""Sequencer: decides which entries load, play and end, and in what order."""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Iterator, List, Optional, Set, Tuple

from mediaseq.logging.config import get_logger
from mediaseq.playback.slot import PlaybackSlot
from mediaseq.playback.video import PlayConfig
from mediaseq.sequencer.references import EndingSlots, RoleReference
from mediaseq.sequencer.states import SequencerState

logger = get_logger(__name__)

Entry = Any
NextEntryProducer = Callable[[Optional[Entry]], Optional[Entry]]
SlotProducer = Callable[..., PlaybackSlot]


@dataclass
class SequencerConfig:
    """
    Collaborators and callbacks of a sequencer.

    `playback_slot_producer` is called with the keyword arguments `entry`,
    `ending_soon` and `ending` and must return a new slot for that entry.
    Callbacks are optional and always delivered on a later loop iteration
    than the call that triggered them.
    """

    next_entry_producer: NextEntryProducer
    playback_slot_producer: SlotProducer
    state_changed: Optional[Callable[[SequencerState, SequencerState], None]] = None
    coming_next: Optional[Callable[[Optional[Entry], Optional[Entry]], None]] = None
    loading_changed: Optional[Callable[[Entry, bool], None]] = None
    playing_changed: Optional[Callable[[Entry], None]] = None
    load_failed: Optional[Callable[[Entry, BaseException], None]] = None
    play_config: Optional[PlayConfig] = None


class Sequencer:
    """
    Continuous playback of a sequence of entries over playback slots.

    Three roles are tracked: the playing slot, the preloading slot (the next
    entry, chosen by the next entry producer) and the skipping slot (an
    explicit target that takes priority over preloading). A slot displaced
    from any role is ended and kept in the ending set until its end()
    completes.

    Loads are never cancelled. A load that resolves for a slot which no
    longer holds its role is ignored.

    All operations must be called from a running event loop.
    """

    def __init__(self, config: SequencerConfig):
        if not callable(config.next_entry_producer):
            raise TypeError("next_entry_producer must be callable")
        if not callable(config.playback_slot_producer):
            raise TypeError("playback_slot_producer must be callable")

        self._config = config
        self._state: RoleReference[SequencerState] = RoleReference(
            SequencerState.PRISTINE, changed=self._state_changed
        )
        self._ending: EndingSlots[PlaybackSlot] = EndingSlots(added=self._drain)
        self._preloading: RoleReference[PlaybackSlot] = RoleReference(changed=self._displaced)
        self._skipping: RoleReference[PlaybackSlot] = RoleReference(changed=self._displaced)
        self._playing: RoleReference[PlaybackSlot] = RoleReference(changed=self._playing_changed)

        # producer's answer for the playing entry; failed preloads may have
        # moved the preloading slot further down the sequence
        self._next_entry: Optional[Entry] = None
        # preloading slot whose load has resolved
        self._preloaded: Optional[PlaybackSlot] = None
        self._advance_pending = False
        self._coming_next: Tuple[Optional[Entry], Optional[Entry]] = (None, None)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> SequencerState:
        return self._state.get()

    @property
    def playing_slot(self) -> Optional[PlaybackSlot]:
        return self._playing.get()

    @property
    def preloading_slot(self) -> Optional[PlaybackSlot]:
        return self._preloading.get()

    @property
    def skipping_slot(self) -> Optional[PlaybackSlot]:
        return self._skipping.get()

    @property
    def ending_slots(self) -> Tuple[PlaybackSlot, ...]:
        return tuple(self._ending)

    # Operations

    def play(self) -> None:
        self._transition(SequencerState.PLAYING)

    def pause(self) -> None:
        self._transition(SequencerState.PAUSED)

    def stop(self) -> None:
        """End every slot. No entry is loaded or played afterwards."""
        if self._state.get() is SequencerState.STOPPED:
            return

        logger.info("Stopping sequencer")
        self._advance_pending = False
        self._next_entry = None
        self._skipping.clear()
        self._preloading.clear()
        self._playing.clear()
        self._state.set(SequencerState.STOPPED)
        self._refresh_coming_next()

    def skip(self, entry: Entry) -> None:
        """
        Play `entry` as soon as it is loaded, replacing whatever plays.

        If it fails to load, the entries that follow it are tried in turn.

        Raises:
            TypeError: If no entry is given
        """
        if entry is None:
            raise TypeError(f"An entry is expected but found {entry!r}")
        if self._ignored("skip"):
            return

        logger.info(f"Skipping to {entry!r}")
        slot = self._new_slot(entry)
        self._skipping.set(slot)
        self._refresh_coming_next()
        self._spawn(self._skip_to(slot))

    def check_next_entry(self) -> None:
        """
        Preload again if the entry following the playing one has changed.

        A preloading slot is kept while its entry is the producer's answer,
        or while the answer is unchanged since the preload chain started
        (the chain may have moved past entries that failed to load). Without
        a preloading slot, any answer is preloaded.
        """
        if self._ignored("check next entry"):
            return

        playing = self._playing.get()
        if playing is None:
            return

        next_entry = self._config.next_entry_producer(playing.entry)
        preloading = self._preloading.get()
        if preloading is not None:
            if preloading.entry == next_entry:
                self._next_entry = next_entry
                return
            if next_entry == self._next_entry:
                return
        elif next_entry is None:
            self._next_entry = None
            return

        logger.info(f"Next entry changed from {self._next_entry!r} to {next_entry!r}")
        self._next_entry = next_entry
        if next_entry is None:
            self._preloading.clear()
            self._refresh_coming_next()
            self._advance_if_ready()
        else:
            self._preload(next_entry)
            self._refresh_coming_next()

    async def join(self) -> None:
        """Wait until every pending load, promotion and drain has settled."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))

    # State machine

    def _transition(self, state: SequencerState) -> None:
        if self._ignored(state.value):
            return
        self._state.set(state)

    def _ignored(self, operation: str) -> bool:
        if self._state.get() is SequencerState.STOPPED:
            logger.warning(f"Ignoring {operation}: sequencer is stopped")
            return True
        return False

    def _state_changed(self, previous: SequencerState, state: SequencerState) -> None:
        logger.info(f"State changed: {previous.value} -> {state.value}")

        if state is SequencerState.PLAYING:
            for slot in self._tracked_slots():
                slot.proceed()
        elif state is SequencerState.PAUSED:
            for slot in self._tracked_slots():
                slot.suspend()
        elif state is SequencerState.STOPPED and previous is SequencerState.PAUSED:
            # fade-outs suspended by the pause have to complete
            for slot in self._ending:
                slot.proceed()

        self._notify(self._config.state_changed, previous, state)

    def _tracked_slots(self) -> Iterator[PlaybackSlot]:
        for role in (self._playing, self._preloading, self._skipping):
            slot = role.get()
            if slot is not None:
                yield slot
        yield from self._ending

    # Roles

    def _displaced(self, previous: Optional[PlaybackSlot], slot: Optional[PlaybackSlot]) -> None:
        if previous is None:
            return
        if previous is self._preloaded:
            self._preloaded = None
        self._ending.add(previous)

    def _playing_changed(self, previous: Optional[PlaybackSlot], slot: Optional[PlaybackSlot]) -> None:
        if previous is not None:
            self._ending.add(previous)
        if slot is None:
            return

        self._advance_pending = False
        logger.info(f"Now playing {slot.entry!r}")
        slot.start(self._config.play_config)
        self._notify(self._config.playing_changed, slot.entry)

        self._next_entry = self._config.next_entry_producer(slot.entry)
        if self._next_entry is not None:
            self._preload(self._next_entry)

    def _drain(self, slot: PlaybackSlot) -> None:
        logger.debug(f"Ending {slot.entry!r}")
        self._spawn(self._remove_when_ended(slot, slot.end()))

    async def _remove_when_ended(self, slot: PlaybackSlot, ending) -> None:
        try:
            await ending
        except Exception:
            logger.error(f"Failed to end {slot.entry!r}", exc_info=True)
        finally:
            self._ending.remove(slot)

    def _new_slot(self, entry: Entry) -> PlaybackSlot:
        slot = None

        def ending_soon(duration: float) -> None:
            self._on_ending_soon(slot)

        def ending(duration: float) -> None:
            self._on_ending(slot)

        slot = self._config.playback_slot_producer(
            entry=entry, ending_soon=ending_soon, ending=ending
        )
        if self._state.get() is not SequencerState.PLAYING:
            slot.suspend()
        return slot

    # Skipping

    async def _skip_to(self, slot: PlaybackSlot) -> None:
        failed: List[Entry] = []

        while True:
            self._notify(self._config.loading_changed, slot.entry, True)
            try:
                await slot.load()
            except Exception as error:
                self._notify(self._config.loading_changed, slot.entry, False)
                if slot is not self._skipping.get():
                    return

                slot = self._replace_failed(self._skipping, slot, error, failed)
                if slot is None:
                    logger.info("No entry left to skip to")
                    self.stop()
                    return
                continue

            self._notify(self._config.loading_changed, slot.entry, False)
            if slot is self._skipping.get():
                self._skipping.take()
                # the preloaded entry is irrelevant once the skip target plays
                self._preloading.clear()
                self._playing.set(slot)
                self._refresh_coming_next()
            return

    # Preloading and automatic advance

    def _preload(self, entry: Entry) -> None:
        if entry is None:
            raise TypeError(f"An entry is expected but found {entry!r}")

        logger.debug(f"Preloading {entry!r}")
        slot = self._new_slot(entry)
        self._preloading.set(slot)
        self._spawn(self._preload_slot(slot))

    async def _preload_slot(self, slot: PlaybackSlot) -> None:
        failed: List[Entry] = []

        while True:
            try:
                await slot.load()
            except Exception as error:
                if slot is not self._preloading.get():
                    return

                slot = self._replace_failed(self._preloading, slot, error, failed)
                if slot is None:
                    self._preloading.clear()
                    self._refresh_coming_next()
                    self._advance_if_ready()
                    return
                continue

            if slot is self._preloading.get():
                self._preloaded = slot
                self._advance_if_ready()
            return

    def _replace_failed(
        self,
        role: RoleReference[PlaybackSlot],
        slot: PlaybackSlot,
        error: BaseException,
        failed: List[Entry],
    ) -> Optional[PlaybackSlot]:
        """
        Report a load failure and put a slot for the following entry in the role.

        Returns:
            The new slot, or None when no untried entry follows
        """
        logger.warning(f"Failed to load {slot.entry!r}: {error}")
        self._notify(self._config.load_failed, slot.entry, error)
        failed.append(slot.entry)

        next_entry = self._config.next_entry_producer(slot.entry)
        if next_entry is None or next_entry in failed:
            return None

        replacement = self._new_slot(next_entry)
        role.set(replacement)
        self._refresh_coming_next()
        return replacement

    def _on_ending_soon(self, slot: Optional[PlaybackSlot]) -> None:
        if slot is not self._playing.get() or self._state.get() is SequencerState.STOPPED:
            return
        self.check_next_entry()

    def _on_ending(self, slot: Optional[PlaybackSlot]) -> None:
        if slot is not self._playing.get() or self._state.get() is SequencerState.STOPPED:
            logger.debug(f"Ignoring ending cue of {slot!r}")
            return
        self._advance_pending = True
        self._advance_if_ready()

    def _advance_if_ready(self) -> None:
        """Promote the preloaded slot once the playing one is ending."""
        if not self._advance_pending:
            return

        slot = self._preloading.get()
        if slot is None:
            self._advance_pending = False
            if self._skipping.get() is None:
                logger.info("Reached the end of the sequence")
                self.stop()
            return

        if slot is not self._preloaded:
            # promoted by _preload_slot once loaded
            return

        self._advance_pending = False
        self._preloaded = None
        self._preloading.take()
        self._playing.set(slot)
        self._refresh_coming_next()

    # Notifications

    def _refresh_coming_next(self) -> None:
        playing = self._playing.get()
        upcoming = self._skipping.get()
        if upcoming is None:
            upcoming = self._preloading.get()

        pair = (
            playing.entry if playing is not None else None,
            upcoming.entry if upcoming is not None else None,
        )
        if pair == self._coming_next:
            return
        self._coming_next = pair
        self._notify(self._config.coming_next, *pair)

    def _notify(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        asyncio.get_running_loop().call_soon(callback, *args)

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Sequencer task failed", exc_info=error)
