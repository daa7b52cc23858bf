"""Interactive viewer for a remote maze game's live data feed."""

# mypy: ignore-errors

from __future__ import annotations

import argparse
import logging
import threading
from typing import TYPE_CHECKING

from .feed import DEFAULT_TIMEOUT, FeedClient
from .render import SURFACE_HEIGHT, SURFACE_WIDTH, new_surface, save_png
from .viewer import MazeViewer, ViewerConfig

logger = logging.getLogger(__name__)

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from matplotlib.backend_bases import Event, KeyEvent

KEY_AUTO_REFRESH = "a"
KEY_REFRESH_NOW = "n"
KEY_PAUSE = " "


def _positive_float(text: str) -> float:
    value = float(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {text}")
    return value


def _non_negative_float(text: str) -> float:
    value = float(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {text}")
    return value


def _positive_int(text: str) -> int:
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {text}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Return the command line parser for the viewer."""
    p = argparse.ArgumentParser(
        description="Live top-down view of a maze game's monster and player feed",
    )
    p.add_argument(
        "base_url",
        help="URL the maze.dat, monster.dat and player.dat files are served under",
    )
    p.add_argument(
        "--timeout", type=_positive_float, default=DEFAULT_TIMEOUT,
        help="seconds to wait on each fetch",
    )
    p.add_argument(
        "--interval", type=_non_negative_float, default=0.25,
        help="seconds between auto-refresh cycles",
    )
    p.add_argument(
        "--retry-delay", type=_non_negative_float, default=1.0,
        help="seconds to wait after a failed cycle",
    )
    p.add_argument("--fps", type=_positive_int, default=10)
    p.add_argument(
        "--no-auto-refresh", dest="auto_refresh", action="store_false",
        help="start with continuous refresh turned off",
    )
    p.add_argument(
        "--snapshot", metavar="PATH",
        help="fetch the feed once, write the view to PATH as PNG and exit",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return p


def config_from_args(args: argparse.Namespace) -> ViewerConfig:
    """Build a :class:`ViewerConfig` from parsed command line arguments."""
    return ViewerConfig(
        base_url=args.base_url,
        timeout=args.timeout,
        interval=args.interval,
        retry_delay=args.retry_delay,
        auto_refresh=args.auto_refresh,
    )


def take_snapshot(
    config: ViewerConfig, path: str, client: FeedClient | None = None,
) -> bool:
    """Run a single fetch/paint cycle and save the visible surface to ``path``."""
    viewer = MazeViewer(config, client=client)
    try:
        if not viewer.run_cycle():
            return False
        save_png(viewer.blit_to(new_surface()), path)
        return True
    finally:
        viewer.close()


def status_line(viewer: MazeViewer) -> str:
    """Summarise the viewer state for the window title."""
    if viewer.paused:
        mode = "paused"
    elif viewer.auto_refresh:
        mode = "auto-refresh on"
    else:
        mode = "auto-refresh off"
    return f"Maze viewer [{mode}] frame {viewer.frames}"


def handle_key(viewer: MazeViewer, key: str | None) -> bool:
    """Apply a key binding to ``viewer``; return ``True`` if it was handled."""
    if key == KEY_AUTO_REFRESH:
        viewer.set_auto_refresh(not viewer.auto_refresh)
    elif key == KEY_REFRESH_NOW:
        viewer.request_refresh_once()
    elif key == KEY_PAUSE:
        if viewer.paused:
            viewer.on_shown()
        else:
            viewer.on_hidden()
    else:
        return False
    return True


def run_window(viewer: MazeViewer, fps: int) -> None:
    """Show the live view in a matplotlib window until it is closed."""
    try:
        import matplotlib.pyplot as plt
        from matplotlib.animation import FuncAnimation
    except ModuleNotFoundError as exc:  # pragma: no cover - viewer path only
        raise RuntimeError("Matplotlib is required to run the viewer") from exc

    dirty = threading.Event()
    dirty.set()
    viewer.on_repaint = dirty.set
    surface = new_surface()

    dpi = 100
    fig = plt.figure(figsize=(SURFACE_WIDTH / dpi, SURFACE_HEIGHT / dpi), dpi=dpi)
    ax = fig.add_axes((0, 0, 1, 1))
    ax.set_axis_off()
    im = ax.imshow(surface, interpolation="nearest", origin="upper")

    def set_title() -> None:
        manager = fig.canvas.manager
        if manager is not None:
            manager.set_window_title(status_line(viewer))

    def on_key(event: KeyEvent) -> None:
        if handle_key(viewer, event.key):
            set_title()

    def on_close(_: Event) -> None:
        viewer.close()

    cid_k = fig.canvas.mpl_connect("key_press_event", on_key)
    cid_c = fig.canvas.mpl_connect("close_event", on_close)

    def update(_: int) -> tuple[object, ...]:
        if dirty.is_set():
            dirty.clear()
            im.set_data(viewer.blit_to(surface))
        set_title()
        return (im,)

    anim = FuncAnimation(
        fig,
        update,
        interval=int(1000 / max(1, fps)),
        blit=False,
        cache_frame_data=False,
    )
    set_title()
    viewer.on_shown()
    try:
        plt.show()
    finally:
        viewer.close()
    _ = (cid_k, cid_c, anim)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``maze-viewer`` command."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = config_from_args(args)

    if args.snapshot:
        if not take_snapshot(config, args.snapshot):
            raise SystemExit(f"could not fetch the maze feed from {config.base_url}")
        logger.info("Wrote %s", args.snapshot)
        return

    run_window(MazeViewer(config), args.fps)
