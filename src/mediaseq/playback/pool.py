"""Pool of reusable players, keyed by provider."""

from typing import Dict, List, Optional

from mediaseq.logging.config import get_logger
from mediaseq.playback.players import Player, PlayerFactory

logger = get_logger(__name__)


class PoolOwnershipError(RuntimeError):
    """Raised when releasing a player this pool did not hand out."""


class PlayersPool:
    """
    Hands out players and recycles the released ones.

    A player is checked out by at most one owner at a time; releasing a
    player that is not currently checked out from this pool fails.
    """

    def __init__(self, player_factory: PlayerFactory):
        self._player_factory = player_factory
        self._free: Dict[str, List[Player]] = {}
        self._busy: List[Player] = []

    @property
    def checked_out(self) -> int:
        return len(self._busy)

    def get_player(self, provider: Optional[str]) -> Player:
        """
        Check out a player for a provider.

        Args:
            provider: Provider identifier

        Returns:
            A recycled player if one is free, a new one otherwise

        Raises:
            ValueError: If the provider is missing or not supported
        """
        if not provider:
            raise ValueError(f"A provider is expected but found {provider!r}")
        if not self._player_factory.can_create_player(provider):
            raise ValueError(f"Unsupported provider type: {provider}")

        free = self._free.get(provider)
        if free:
            player = free.pop()
            logger.debug(f"Recycling {provider} player")
        else:
            player = self._player_factory.new_player(provider)

        self._busy.append(player)
        return player

    def release_player(self, player: Player) -> None:
        """
        Give a player back to the pool.

        Raises:
            PoolOwnershipError: If the player is not checked out from this pool
        """
        for idx, busy in enumerate(self._busy):
            if busy is player:
                del self._busy[idx]
                break
        else:
            raise PoolOwnershipError(f"{player!r} is not checked out from this pool")

        self._free.setdefault(player.provider, []).append(player)
