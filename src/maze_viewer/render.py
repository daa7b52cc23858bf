"""Rasterise decoded feed data into RGB frames."""

from __future__ import annotations

import collections.abc as cabc
import os
from typing import TYPE_CHECKING, Any, TypeAlias

import numpy as np

from .feed import MAZE_COLS, MAZE_ROWS, FeedData

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from numpy import ndarray as NDArray
else:
    NDArray: TypeAlias = Any

RGB: TypeAlias = tuple[int, int, int]

CELL_SIZE = 5  # pixels per maze cell edge
FRAME_WIDTH = MAZE_COLS * CELL_SIZE
FRAME_HEIGHT = MAZE_ROWS * CELL_SIZE
BLIT_OFFSET = (2, 2)
SURFACE_WIDTH = FRAME_WIDTH + 2 * BLIT_OFFSET[0]
SURFACE_HEIGHT = FRAME_HEIGHT + 2 * BLIT_OFFSET[1]

# Connection bits in the low nibble of a cell code
CONNECT_UP = 0x1
CONNECT_DOWN = 0x2
CONNECT_RIGHT = 0x4
CONNECT_LEFT = 0x8

BACKGROUND: RGB = (0, 0, 0)
DARK_GRAY: RGB = (64, 64, 64)
LIGHT_GRAY: RGB = (192, 192, 192)
WHITE: RGB = (255, 255, 255)
MONSTER_RGB: RGB = (255, 0, 0)
PLAYER_RGB: RGB = (0, 255, 0)


def logical_to_pixel(value: int) -> int:
    """Map a logical feed coordinate onto the frame's pixel grid."""
    return value * 5 // 12


def wall_tile(code: int) -> NDArray:
    """Return the ``5x5`` RGB tile for a maze cell code.

    A zero code is open floor. Any other code is drawn as a bevelled block
    whose edges turn white where the low nibble says the wall continues into
    the neighbouring cell, so runs of wall merge into one shape.
    """
    tile = np.zeros((CELL_SIZE, CELL_SIZE, 3), dtype=np.uint8)
    tile[:, :] = BACKGROUND
    if code == 0:
        return tile

    if code & CONNECT_UP:
        tile[0, 0] = DARK_GRAY
        tile[0, 1:4] = WHITE
        tile[0, 4] = LIGHT_GRAY
    else:
        tile[0, :] = DARK_GRAY

    if code & CONNECT_DOWN:
        tile[4, 0] = DARK_GRAY
        tile[4, 1:4] = WHITE
        tile[4, 4] = LIGHT_GRAY
    else:
        tile[4, :] = LIGHT_GRAY

    tile[1:4, 4] = WHITE if code & CONNECT_RIGHT else LIGHT_GRAY
    tile[1:4, 0] = WHITE if code & CONNECT_LEFT else DARK_GRAY
    tile[1:4, 1:4] = WHITE
    return tile


# Lookup table indexed by the raw cell byte
WALL_TILES = np.stack([wall_tile(code) for code in range(256)])


def new_frame() -> NDArray:
    """Allocate a blank offscreen frame."""
    return np.zeros((FRAME_HEIGHT, FRAME_WIDTH, 3), dtype=np.uint8)


def new_surface() -> NDArray:
    """Allocate the visible surface the active frame is blitted onto."""
    return np.zeros((SURFACE_HEIGHT, SURFACE_WIDTH, 3), dtype=np.uint8)


def render_maze(grid: NDArray, out: NDArray) -> None:
    """Paint every cell of ``grid`` into ``out`` in place."""
    grid_arr = np.asarray(grid, dtype=np.uint8)
    if grid_arr.shape != (MAZE_ROWS, MAZE_COLS):
        msg = f"maze grid must be {MAZE_ROWS}x{MAZE_COLS}, got {grid_arr.shape}"
        raise ValueError(msg)
    tiles = WALL_TILES[grid_arr]  # rows, cols, tile_y, tile_x, rgb
    out[:, :] = tiles.transpose(0, 2, 1, 3, 4).reshape(FRAME_HEIGHT, FRAME_WIDTH, 3)


def draw_glyph(frame: NDArray, x: int, y: int, color: RGB) -> None:
    """Draw the 4x4 plus-shaped actor marker anchored at pixel ``(x, y)``.

    Parts of the glyph past the right or bottom edge of ``frame`` are clipped.
    """
    frame[y : y + 4, x + 1 : x + 3] = color
    frame[y + 1 : y + 3, x : x + 4] = color


def draw_actors(
    frame: NDArray, positions: cabc.Iterable[cabc.Sequence[int]], color: RGB,
) -> int:
    """Draw a glyph for every present position and return how many were drawn."""
    drawn = 0
    for pos in positions:
        x, y = int(pos[0]), int(pos[1])
        if x == 0 and y == 0:
            continue
        draw_glyph(frame, logical_to_pixel(x), logical_to_pixel(y), color)
        drawn += 1
    return drawn


def render_frame(data: FeedData, out: NDArray | None = None) -> NDArray:
    """Render the maze, monsters and player from ``data`` into ``out``."""
    frame = new_frame() if out is None else out
    render_maze(data.maze_grid(), frame)
    draw_actors(frame, data.monster_positions(), MONSTER_RGB)
    draw_actors(frame, [data.player_position()], PLAYER_RGB)
    return frame


def blit(
    frame: NDArray, surface: NDArray, offset: tuple[int, int] = BLIT_OFFSET,
) -> NDArray:
    """Copy ``frame`` onto ``surface`` at ``offset`` without scaling."""
    ox, oy = offset
    h, w = frame.shape[:2]
    surface[oy : oy + h, ox : ox + w] = frame
    return surface


def save_png(surface: NDArray, path: str | os.PathLike[str]) -> None:
    """Write ``surface`` to ``path`` as a PNG image."""
    try:
        from PIL import Image
    except ModuleNotFoundError as exc:  # pragma: no cover
        raise RuntimeError("Saving snapshots requires Pillow") from exc

    Image.fromarray(np.asarray(surface, dtype=np.uint8)).save(path, format="PNG")
