"""Player abstraction over native playback backends."""

from typing import Awaitable, Callable, Dict, Optional, Protocol

from mediaseq.logging.config import get_logger
from mediaseq.playback.fade import FadeAnimation, Ramp
from mediaseq.playback.video import PlayConfig

logger = get_logger(__name__)

VOLUME_MAX = 100


class NativePlayerAdapter(Protocol):
    """Capability set a concrete backend exposes to a Player."""

    volume: float
    opacity: float

    @property
    def current_time(self) -> float: ...

    @property
    def duration(self) -> Optional[float]: ...

    def load_video_by_id(self, video_id: str) -> Awaitable[None]: ...

    def play_video(self) -> None: ...

    def pause_video(self) -> None: ...

    def stop_video(self) -> None: ...


class Player:
    """
    Drives one native adapter: loading, transport and fade transitions.

    Fading alters both the visual opacity and the audio volume of the
    adapter. Starting a fade while another one runs stops the running one
    and continues from the current values.
    """

    def __init__(
        self,
        adapter: NativePlayerAdapter,
        provider: str,
        debug_duration: float = -1,
        fade_step: float = 0.05,
    ):
        """
        Initialize player.

        Args:
            adapter: Native backend to drive
            provider: Provider identifier the adapter serves
            debug_duration: Cap for the reported duration (negative to disable)
            fade_step: Interval between two fade steps in seconds
        """
        self.adapter = adapter
        self._provider = provider
        self._debug_duration = debug_duration
        self._fade_step = fade_step
        self._fade: Optional[FadeAnimation] = None
        self._audio_gain: Optional[float] = None

    def __repr__(self) -> str:
        return f"Player(provider={self._provider!r})"

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def current_time(self) -> float:
        return self.adapter.current_time

    @property
    def duration(self) -> Optional[float]:
        real_duration = self.adapter.duration
        # unknown until the adapter has loaded
        if real_duration is None or self._debug_duration < 0:
            return real_duration
        return min(self._debug_duration, real_duration)

    async def load_by_id(self, video_id: str) -> None:
        await self.adapter.load_video_by_id(video_id)

    def play(self, config: PlayConfig) -> None:
        if config is None:
            raise TypeError(f"A play configuration is expected but found {config!r}")
        self._audio_gain = config.audio_gain
        self.adapter.play_video()

    def pause(self) -> None:
        if self._fade:
            self._fade.pause()
        self.adapter.pause_video()

    def resume(self) -> None:
        self.adapter.play_video()
        if self._fade:
            self._fade.resume()

    def stop(self) -> None:
        if self._fade:
            self._fade.stop()
            self._fade = None
        self.adapter.stop_video()

    def fade_in(self, duration: float) -> Awaitable[None]:
        return self._start_fade(fade_in=True, duration=duration)

    async def fade_out(self, duration: float) -> None:
        await self._start_fade(fade_in=False, duration=duration)
        # the output must end fully muted even if the animation was cut short
        self._mute()

    def _mute(self) -> None:
        self.adapter.opacity = 0
        self.adapter.volume = 0

    def _start_fade(self, fade_in: bool, duration: float) -> Awaitable[None]:
        gain = 1.0 if self._audio_gain is None else self._audio_gain
        volume_max = gain * VOLUME_MAX

        opacity_from = 0.0 if fade_in else 1.0
        volume_from = 0.0 if fade_in else volume_max

        if self._fade:
            self._fade.stop()
            opacity_from = float(self.adapter.opacity)
            volume_from = float(self.adapter.volume)

        fade = FadeAnimation(
            ramps={
                "opacity": Ramp(opacity_from, 1.0 if fade_in else 0.0, self._set_opacity),
                "volume": Ramp(volume_from, volume_max if fade_in else 0.0, self._set_volume),
            },
            duration=duration,
            step=self._fade_step,
        )
        self._fade = fade

        done = fade.start()
        done.add_done_callback(lambda _: self._clear_fade(fade))
        return done

    def _clear_fade(self, fade: FadeAnimation) -> None:
        if self._fade is fade:
            self._fade = None

    def _set_opacity(self, value: float) -> None:
        self.adapter.opacity = value

    def _set_volume(self, value: float) -> None:
        self.adapter.volume = value


AdapterFactory = Callable[[], NativePlayerAdapter]


class PlayerFactory:
    """Creates players for the providers it has adapter factories for."""

    def __init__(
        self,
        adapter_factories: Dict[str, AdapterFactory],
        debug_duration: float = -1,
        fade_step: float = 0.05,
    ):
        self._adapter_factories = dict(adapter_factories)
        self._debug_duration = debug_duration
        self._fade_step = fade_step

    def can_create_player(self, provider: Optional[str]) -> bool:
        return provider in self._adapter_factories

    def new_player(self, provider: str) -> Player:
        """
        Create a player for a provider.

        Args:
            provider: Provider identifier

        Returns:
            Player instance

        Raises:
            ValueError: If no adapter is registered for the provider
        """
        if not self.can_create_player(provider):
            raise ValueError(f"Unsupported provider type: {provider}")

        logger.debug(f"Creating {provider} player")
        return Player(
            adapter=self._adapter_factories[provider](),
            provider=provider,
            debug_duration=self._debug_duration,
            fade_step=self._fade_step,
        )
