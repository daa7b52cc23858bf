"""HTTP client and decoders for the maze game's binary data feed."""

from __future__ import annotations

import collections.abc as cabc
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias
from urllib.parse import urljoin

import numpy as np
import requests

logger = logging.getLogger(__name__)

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from numpy import ndarray as NDArray
else:
    NDArray: TypeAlias = Any

MAZE_COLS, MAZE_ROWS = 127, 94
MAZE_BYTES = MAZE_COLS * MAZE_ROWS  # one cell code per byte
MONSTER_SLOTS = 100
MONSTER_BYTES = MONSTER_SLOTS * 4  # x-lo, x-hi, y-lo, y-hi
PLAYER_BYTES = 4

MAZE_FILE = "maze.dat"
MONSTER_FILE = "monster.dat"
PLAYER_FILE = "player.dat"

FETCH_CHUNK = 4096
DEFAULT_TIMEOUT = 5.0

NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


class HTTPSession(Protocol):
    """Subset of :class:`requests.Session` used by the feed client."""

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        """Issue a GET request for ``url``."""

    def close(self) -> None:
        """Release pooled connections."""


@dataclass
class FeedData:
    """Raw byte buffers for one snapshot of the game feed.

    The buffers are allocated once and updated in place, so bytes a server
    leaves out of a short response keep the value from the previous fetch.
    """

    maze: bytearray = field(default_factory=lambda: bytearray(MAZE_BYTES))
    monsters: bytearray = field(default_factory=lambda: bytearray(MONSTER_BYTES))
    player: bytearray = field(default_factory=lambda: bytearray(PLAYER_BYTES))

    def copy(self) -> FeedData:
        """Return an independent copy of all three buffers."""
        return FeedData(
            maze=bytearray(self.maze),
            monsters=bytearray(self.monsters),
            player=bytearray(self.player),
        )

    def update_from(self, other: FeedData) -> None:
        """Overwrite the buffers in place with the contents of ``other``."""
        self.maze[:] = other.maze
        self.monsters[:] = other.monsters
        self.player[:] = other.player

    def maze_grid(self) -> NDArray:
        """Return the cell codes as a ``(rows, cols)`` uint8 array."""
        return decode_maze(self.maze)

    def monster_positions(self) -> NDArray:
        """Return the monster slots as an ``(n, 2)`` array of logical x/y."""
        return decode_positions(self.monsters)

    def player_position(self) -> tuple[int, int]:
        """Return the player's logical ``(x, y)``."""
        x, y = decode_positions(self.player)[0]
        return int(x), int(y)


def decode_maze(raw: bytes | bytearray) -> NDArray:
    """Reshape a row-major maze dump into a ``(MAZE_ROWS, MAZE_COLS)`` grid."""
    if len(raw) != MAZE_BYTES:
        msg = f"maze data must be {MAZE_BYTES} bytes, got {len(raw)}"
        raise ValueError(msg)
    return np.frombuffer(bytes(raw), dtype=np.uint8).reshape(MAZE_ROWS, MAZE_COLS)


def decode_positions(raw: bytes | bytearray) -> NDArray:
    """Decode little-endian uint16 ``(x, y)`` pairs into an ``(n, 2)`` array."""
    if len(raw) % 4:
        msg = f"position data must be a multiple of 4 bytes, got {len(raw)}"
        raise ValueError(msg)
    values = np.frombuffer(bytes(raw), dtype="<u2").astype(np.int64)
    return values.reshape(-1, 2)


def resource_url(base_url: str, name: str) -> str:
    """Resolve ``name`` against ``base_url`` as a directory."""
    if not base_url.endswith("/"):
        base_url += "/"
    return urljoin(base_url, name)


def read_into(chunks: cabc.Iterable[bytes], buf: bytearray) -> int:
    """Copy ``chunks`` into the front of ``buf`` until it is full.

    Returns the number of bytes written. A stream that ends early leaves the
    remainder of ``buf`` untouched.
    """
    size = len(buf)
    filled = 0
    if size == 0:
        return 0
    for chunk in chunks:
        if not chunk:
            continue
        take = min(len(chunk), size - filled)
        buf[filled : filled + take] = chunk[:take]
        filled += take
        if filled >= size:
            break
    return filled


def fetch_resource(
    session: HTTPSession, url: str, buf: bytearray, timeout: float = DEFAULT_TIMEOUT,
) -> int:
    """Download ``url`` into ``buf`` and return the number of bytes read."""
    with session.get(
        url, headers=NO_CACHE_HEADERS, stream=True, timeout=timeout,
    ) as resp:
        resp.raise_for_status()
        count = read_into(resp.iter_content(chunk_size=FETCH_CHUNK), buf)
    if count < len(buf):
        logger.debug("Short read from %s: %d of %d bytes", url, count, len(buf))
    return count


class FeedClient:
    """Fetches the three feed files from a fixed base URL."""

    def __init__(
        self,
        base_url: str,
        session: HTTPSession | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url
        self.session: HTTPSession = session if session is not None else requests.Session()
        self.timeout = timeout

    def urls(self) -> tuple[str, str, str]:
        """Return the maze, monster and player URLs in fetch order."""
        return (
            resource_url(self.base_url, MAZE_FILE),
            resource_url(self.base_url, MONSTER_FILE),
            resource_url(self.base_url, PLAYER_FILE),
        )

    def fetch(self, data: FeedData) -> None:
        """Refresh ``data`` from the server.

        All three files are read into a staging copy first; ``data`` is only
        updated once every request has succeeded.
        """
        staged = data.copy()
        maze_url, monster_url, player_url = self.urls()
        fetch_resource(self.session, maze_url, staged.maze, self.timeout)
        fetch_resource(self.session, monster_url, staged.monsters, self.timeout)
        fetch_resource(self.session, player_url, staged.player, self.timeout)
        data.update_from(staged)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()
