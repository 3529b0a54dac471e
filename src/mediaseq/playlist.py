"""YAML playlists and their next entry producer."""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import yaml

from mediaseq.logging.config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlaylistEntry:
    """One playlist item. `index` keeps repeated media distinct."""

    index: int
    title: str
    id: str
    duration: float
    fail: bool = False


class Playlist:
    """Ordered entries played one after the other."""

    def __init__(self, entries: List[PlaylistEntry]):
        self.entries = list(entries)

    def __len__(self) -> int:
        return len(self.entries)

    def next_entry(self, entry: Optional[PlaylistEntry]) -> Optional[PlaylistEntry]:
        """
        Entry to play after `entry`.

        Args:
            entry: Current entry, None for the first one

        Returns:
            The following entry, None at the end of the playlist
        """
        idx = 0 if entry is None else entry.index + 1
        if idx >= len(self.entries):
            return None
        return self.entries[idx]


def load_playlist(path: Path) -> Playlist:
    """
    Load a playlist file.

    The file holds an `entries` list whose items have `id` and `duration`,
    and optionally `title` and `fail` (simulate a load failure).

    Raises:
        ValueError: If the file is not a valid playlist
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    raw_entries = data.get("entries") if isinstance(data, dict) else None
    if not isinstance(raw_entries, list):
        raise ValueError(f"{path} has no 'entries' list")

    entries = []
    for idx, raw in enumerate(raw_entries):
        try:
            entries.append(
                PlaylistEntry(
                    index=idx,
                    title=str(raw.get("title", raw["id"])),
                    id=str(raw["id"]),
                    duration=float(raw["duration"]),
                    fail=bool(raw.get("fail", False)),
                )
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid entry #{idx} in {path}: {e}") from e

    logger.debug(f"Loaded {len(entries)} entries from {path}")
    return Playlist(entries)
