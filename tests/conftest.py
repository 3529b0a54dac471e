import asyncio
from unittest.mock import MagicMock, patch

import pytest

from mediaseq.config.settings import Settings
from mediaseq.sequencer import Sequencer, SequencerConfig


def run(coro):
    """Run an async scenario from a sync test function."""
    return asyncio.run(coro)


async def settle(rounds: int = 50) -> None:
    """Let every ready callback and task continuation run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def sequential(entries):
    """Next entry producer walking `entries`, which tests may mutate."""

    def next_entry(entry):
        idx = 0 if entry is None else entries.index(entry) + 1
        if idx >= len(entries):
            return None
        return entries[idx]

    return next_entry


class FakeSlot:
    """Playback slot double; tests resolve or fail `loaded` themselves."""

    def __init__(self, entry, ending_soon, ending):
        loop = asyncio.get_running_loop()
        self.entry = entry
        self.ending_soon = ending_soon
        self.ending = ending

        self.loaded = loop.create_future()
        self.ended = loop.create_future()
        self.ended.set_result(None)

        self.load = MagicMock(return_value=self.loaded)
        self.end = MagicMock(return_value=self.ended)
        self.start = MagicMock()
        self.suspend = MagicMock()
        self.proceed = MagicMock()

    def __repr__(self):
        return f"FakeSlot({self.entry!r})"


class SlotRecorder:
    """Playback slot producer keeping every slot it creates."""

    def __init__(self, failing=(), error=None, manual=False):
        self.failing = list(failing)
        self.error = error or RuntimeError("mock load error")
        self.manual = manual
        self.slots = []

    def __call__(self, entry, ending_soon, ending):
        slot = FakeSlot(entry, ending_soon, ending)
        if entry in self.failing:
            slot.loaded.set_exception(self.error)
        elif not self.manual:
            slot.loaded.set_result(None)
        self.slots.append(slot)
        return slot

    @property
    def entries(self):
        return [slot.entry for slot in self.slots]

    def for_entry(self, entry):
        return [slot for slot in self.slots if slot.entry == entry]


@pytest.fixture
def entries():
    return [f"entry{idx}" for idx in range(5)]


@pytest.fixture
def callbacks():
    return MagicMock(
        spec=["state_changed", "coming_next", "loading_changed", "playing_changed", "load_failed"]
    )


@pytest.fixture
def make_sequencer(callbacks):
    def factory(recorder, next_entry_producer=None):
        return Sequencer(
            SequencerConfig(
                next_entry_producer=next_entry_producer or (lambda entry: None),
                playback_slot_producer=recorder,
                state_changed=callbacks.state_changed,
                coming_next=callbacks.coming_next,
                loading_changed=callbacks.loading_changed,
                playing_changed=callbacks.playing_changed,
                load_failed=callbacks.load_failed,
            )
        )

    return factory


@pytest.fixture
def test_settings(tmp_path_factory):
    """Fast settings for tests."""
    return Settings(
        transition_duration=0.05,
        fade_step=0.01,
        cue_interval=0.01,
        ending_soon_offset=0.1,
        log_file=tmp_path_factory.mktemp("logs") / "test.log",
    )


@pytest.fixture
def mock_settings(test_settings):
    """Patch get_settings to return test settings."""
    with patch("mediaseq.config.get_settings", return_value=test_settings), \
         patch("mediaseq.cli.get_settings", return_value=test_settings):
        yield test_settings
