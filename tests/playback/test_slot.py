"""Tests for playback slots."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import run, settle
from mediaseq.playback import (
    CueTimes,
    PlayConfig,
    PlaybackSlot,
    PlayerFactory,
    PlayersPool,
    SlotPhase,
    Video,
    default_cue_times,
    playback_slot_producer,
)
from mediaseq.playback.simulated import PROVIDER, SimulatedAdapter


def video_for(entry):
    return Video(provider=PROVIDER, id=entry)


def mock_player():
    player = MagicMock()
    player.load_by_id = AsyncMock()
    player.fade_out = AsyncMock()
    player.duration = None
    return player


def mock_pool(player):
    pool = MagicMock()
    pool.get_player.return_value = player
    return pool


def make_slot(pool, entry="clip", ending_soon=None, ending=None, **kwargs):
    cues = CueTimes(ending_soon=lambda d: d, ending=lambda d: d).bind(
        ending_soon=ending_soon or MagicMock(), ending=ending or MagicMock()
    )
    return PlaybackSlot(
        entry=entry,
        players_pool=pool,
        video_fetcher=video_for,
        cues=cues,
        transition_duration=0.02,
        cue_interval=0.01,
        **kwargs,
    )


def test_load_checks_out_and_loads():
    player = mock_player()
    pool = mock_pool(player)

    async def scenario():
        slot = make_slot(pool)
        assert slot.phase is SlotPhase.CREATED

        loading = slot.load()
        assert slot.load() is loading
        await loading

        assert slot.phase is SlotPhase.LOADED
        assert slot.player is player
        pool.get_player.assert_called_once_with(PROVIDER)
        player.load_by_id.assert_awaited_once_with("clip")

    run(scenario())


def test_failed_load_releases_player():
    player = mock_player()
    player.load_by_id.side_effect = LookupError("Unknown video id: clip")
    pool = mock_pool(player)

    async def scenario():
        slot = make_slot(pool)
        with pytest.raises(LookupError):
            await slot.load()

        assert slot.phase is SlotPhase.FAILED
        assert slot.player is None
        pool.release_player.assert_called_once_with(player)

    run(scenario())


def test_failed_fetch_never_checks_out():
    pool = mock_pool(mock_player())

    async def scenario():
        slot = PlaybackSlot(
            entry="clip",
            players_pool=pool,
            video_fetcher=MagicMock(side_effect=KeyError("clip")),
            cues=CueTimes(lambda d: d, lambda d: d).bind(MagicMock(), MagicMock()),
            transition_duration=0.02,
        )
        with pytest.raises(KeyError):
            await slot.load()

        assert slot.phase is SlotPhase.FAILED
        pool.get_player.assert_not_called()
        pool.release_player.assert_not_called()

    run(scenario())


def test_start_before_load_fails():
    async def scenario():
        slot = make_slot(mock_pool(mock_player()))
        with pytest.raises(RuntimeError):
            slot.start()

        slot.load()
        with pytest.raises(RuntimeError):
            slot.start()

    run(scenario())


def test_start_plays_and_fades_in():
    player = mock_player()

    async def scenario():
        slot = make_slot(mock_pool(player))
        await slot.load()
        config = PlayConfig(audio_gain=0.3)

        slot.start(config)

        assert slot.phase is SlotPhase.PLAYING
        player.play.assert_called_once_with(config)
        player.fade_in.assert_called_once_with(duration=0.02)
        player.pause.assert_not_called()

    run(scenario())


def test_suspended_slot_starts_paused_and_proceeds():
    player = mock_player()

    async def scenario():
        slot = make_slot(mock_pool(player))
        slot.suspend()
        await slot.load()
        player.pause.assert_not_called()

        slot.start()
        player.pause.assert_called_once()

        slot.proceed()
        player.resume.assert_called_once()
        assert not slot.suspended

    run(scenario())


def test_end_is_memoized_and_releases_once():
    player = mock_player()
    pool = mock_pool(player)

    async def scenario():
        slot = make_slot(pool)
        await slot.load()
        slot.start()

        ending = slot.end()
        assert slot.end() is ending
        await ending
        await slot.end()

        assert slot.phase is SlotPhase.ENDED
        player.fade_out.assert_awaited_once_with(duration=0.02)
        player.stop.assert_called_once()
        pool.release_player.assert_called_once_with(player)

    run(scenario())


def test_end_while_suspended_skips_fade_out():
    player = mock_player()
    pool = mock_pool(player)

    async def scenario():
        slot = make_slot(pool)
        await slot.load()
        slot.start()
        slot.suspend()

        await slot.end()

        player.fade_out.assert_not_awaited()
        player.stop.assert_called_once()
        pool.release_player.assert_called_once_with(player)

    run(scenario())


def test_end_of_loaded_slot_skips_fade_out():
    player = mock_player()
    pool = mock_pool(player)

    async def scenario():
        slot = make_slot(pool)
        await slot.load()
        await slot.end()

        player.fade_out.assert_not_awaited()
        pool.release_player.assert_called_once_with(player)

    run(scenario())


def test_end_of_unloaded_slot():
    pool = mock_pool(mock_player())

    async def scenario():
        slot = make_slot(pool)
        await slot.end()

        assert slot.phase is SlotPhase.ENDED
        pool.get_player.assert_not_called()
        pool.release_player.assert_not_called()

    run(scenario())


def test_end_during_load_waits_then_releases():
    player = mock_player()
    pool = mock_pool(player)

    async def scenario():
        gate = asyncio.get_running_loop().create_future()

        async def wait_for_gate(video_id):
            await gate

        player.load_by_id.side_effect = wait_for_gate

        slot = make_slot(pool)
        loading = slot.load()
        await settle()
        ending = slot.end()
        await settle()
        assert not ending.done()
        pool.release_player.assert_not_called()

        gate.set_result(None)
        await loading
        await ending

        assert slot.phase is SlotPhase.ENDED
        pool.release_player.assert_called_once_with(player)

    run(scenario())


def test_end_during_failing_load_releases_once():
    player = mock_player()
    pool = mock_pool(player)

    async def scenario():
        gate = asyncio.get_running_loop().create_future()

        async def wait_for_gate(video_id):
            await gate

        player.load_by_id.side_effect = wait_for_gate

        slot = make_slot(pool)
        loading = slot.load()
        await settle()
        ending = slot.end()

        gate.set_exception(LookupError("gone"))
        with pytest.raises(LookupError):
            await loading
        await ending

        assert slot.phase is SlotPhase.ENDED
        pool.release_player.assert_called_once_with(player)

    run(scenario())


def simulated_pool(catalog):
    return PlayersPool(
        PlayerFactory({PROVIDER: lambda: SimulatedAdapter(catalog)}, fade_step=0.01)
    )


def test_cues_fire_in_order_during_playback(test_settings):
    fired = []
    pool = simulated_pool({"clip": 0.3})

    async def scenario():
        ended = asyncio.Event()

        def ending(duration):
            fired.append(("ending", duration))
            ended.set()

        produce = playback_slot_producer(
            players_pool=pool,
            video_fetcher=video_for,
            cue_times=default_cue_times(test_settings),
            transition_duration=test_settings.transition_duration,
            cue_interval=test_settings.cue_interval,
        )
        slot = produce("clip", lambda duration: fired.append(("ending soon", duration)), ending)
        await slot.load()
        slot.start()

        await asyncio.wait_for(ended.wait(), timeout=2)
        assert slot.player.current_time >= 0.3 - test_settings.transition_duration
        await slot.end()

    run(scenario())

    assert fired == [("ending soon", 0.3), ("ending", 0.3)]
    assert pool.checked_out == 0


def test_cues_all_fire_for_zero_duration(test_settings):
    fired = []
    pool = simulated_pool({"clip": 0})

    async def scenario():
        slot = make_slot(
            pool,
            ending_soon=lambda duration: fired.append("ending soon"),
            ending=lambda duration: fired.append("ending"),
        )
        await slot.load()
        slot.start()
        await asyncio.sleep(0.05)
        await slot.end()

    run(scenario())
    assert fired == ["ending soon", "ending"]


def test_ending_cancels_pending_cues():
    fired = []
    pool = simulated_pool({"clip": 60.0})

    async def scenario():
        slot = make_slot(pool, ending=lambda duration: fired.append("ending"))
        await slot.load()
        slot.start()
        await slot.end()
        await asyncio.sleep(0.05)

    run(scenario())
    assert fired == []


def test_default_cue_times(test_settings):
    times = default_cue_times(test_settings)

    assert times.ending_soon(1.0) == pytest.approx(0.9)
    assert times.ending(1.0) == pytest.approx(0.95)
    assert times.ending_soon(0.05) == 0.0
    assert times.ending(0.01) == 0.0
