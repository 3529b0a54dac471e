"""In-memory playback backend whose position follows the event loop clock."""

import asyncio
from typing import Dict, Optional

PROVIDER = "simulated"


class SimulatedAdapter:
    """
    Native adapter playing media that only exist as durations.

    Args:
        catalog: Media id to duration in seconds; unknown ids fail to load
        speed: Playback speed factor applied to the loop clock
        load_delay: Seconds a load takes before resolving
    """

    def __init__(self, catalog: Dict[str, float], speed: float = 1.0, load_delay: float = 0.0):
        self.catalog = catalog
        self.speed = speed
        self.load_delay = load_delay
        self.volume = 0.0
        self.opacity = 0.0
        self.video_id: Optional[str] = None
        self._duration = 0.0
        self._position = 0.0
        self._playing_since: Optional[float] = None

    @property
    def playing(self) -> bool:
        return self._playing_since is not None

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def current_time(self) -> float:
        position = self._position
        if self._playing_since is not None:
            elapsed = asyncio.get_running_loop().time() - self._playing_since
            position += elapsed * self.speed
        return min(position, self._duration)

    async def load_video_by_id(self, video_id: str) -> None:
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        if video_id not in self.catalog:
            raise LookupError(f"Unknown video id: {video_id}")

        self.video_id = video_id
        self._duration = float(self.catalog[video_id])
        self._position = 0.0
        self._playing_since = None

    def play_video(self) -> None:
        if self._playing_since is None:
            self._playing_since = asyncio.get_running_loop().time()

    def pause_video(self) -> None:
        if self._playing_since is not None:
            self._position = self.current_time
            self._playing_since = None

    def stop_video(self) -> None:
        self._position = 0.0
        self._playing_since = None
