"""Background polling loop and double-buffered frame store."""

from __future__ import annotations

import collections.abc as cabc
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeAlias

from .feed import DEFAULT_TIMEOUT, FeedClient, FeedData
from .render import blit, new_frame, render_frame

logger = logging.getLogger(__name__)

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from numpy import ndarray as NDArray
else:
    NDArray: TypeAlias = Any


@dataclass(frozen=True)
class ViewerConfig:
    """Settings for a :class:`MazeViewer` instance."""

    base_url: str
    timeout: float = DEFAULT_TIMEOUT
    interval: float = 0.25
    retry_delay: float = 1.0
    auto_refresh: bool = True


class MazeViewer:
    """Polls the game feed on a worker thread and keeps the latest frame.

    Two frames are owned by the viewer. The worker only ever paints the
    inactive one, then swaps ``active`` under ``_buffer_lock``; readers copy
    the active frame under the same lock.

    The worker sleeps on ``_cond`` until the viewer is shown and either
    auto-refresh is on or a single refresh has been requested.
    """

    def __init__(
        self,
        config: ViewerConfig,
        client: FeedClient | None = None,
        on_repaint: cabc.Callable[[], None] | None = None,
    ) -> None:
        self.config = config
        self.client = (
            client
            if client is not None
            else FeedClient(config.base_url, timeout=config.timeout)
        )
        self.on_repaint = on_repaint
        self.data = FeedData()
        self.frames = 0
        self.failures = 0

        self._buffers = (new_frame(), new_frame())
        self._active = 0
        self._buffer_lock = threading.Lock()

        self._cond = threading.Condition()
        self._auto_refresh = bool(config.auto_refresh)
        self._refresh_once = False
        self._claimed_request = False
        self._paused = True
        self._closed = False
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------
    @property
    def auto_refresh(self) -> bool:
        return self._auto_refresh

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def refresh_pending(self) -> bool:
        return self._refresh_once

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active_index(self) -> int:
        return self._active

    def is_running(self) -> bool:
        """Return ``True`` while the polling thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def set_auto_refresh(self, enabled: bool | int) -> None:
        """Turn continuous refresh on or off."""
        with self._cond:
            self._auto_refresh = bool(enabled)
            self._cond.notify_all()

    def request_refresh_once(self) -> None:
        """Ask for exactly one fetch/paint cycle."""
        with self._cond:
            self._refresh_once = True
            self._cond.notify_all()

    def on_shown(self) -> None:
        """Resume polling, starting the worker thread on first use."""
        with self._cond:
            if self._closed:
                return
            self._paused = False
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._run, name="maze-viewer-poll", daemon=True,
                )
                self._thread.start()
            self._cond.notify_all()

    def on_hidden(self) -> None:
        """Suspend polling; the worker stays alive but blocked."""
        with self._cond:
            self._paused = True
            self._cond.notify_all()

    def close(self) -> None:
        """Stop the worker, release the HTTP session and join the thread."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()
        self.client.close()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=3 * self.config.timeout + 1.0)
            if thread.is_alive():  # pragma: no cover - hung transport
                logger.warning("Polling thread did not stop within the timeout")

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------
    def snapshot(self) -> NDArray:
        """Return a copy of the frame currently on display."""
        with self._buffer_lock:
            return self._buffers[self._active].copy()

    def blit_to(self, surface: NDArray) -> NDArray:
        """Draw the active frame onto ``surface`` at the standard offset."""
        return blit(self.snapshot(), surface)

    def run_cycle(self) -> bool:
        """Fetch the feed, paint the back buffer and flip it to the front.

        Returns ``False`` when the cycle was abandoned; the displayed frame is
        left untouched in that case.
        """
        back = 1 - self._active
        try:
            self.client.fetch(self.data)
            render_frame(self.data, out=self._buffers[back])
        except Exception as exc:
            self.failures += 1
            logger.debug("Refresh cycle abandoned: %s", exc)
            return False

        with self._buffer_lock:
            self._active = back
            self.frames += 1
        logger.debug("Painted frame %d into buffer %d", self.frames, back)
        if self.on_repaint is not None:
            self.on_repaint()
        return True

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    def _ready(self) -> bool:
        return not self._paused and (self._auto_refresh or self._refresh_once)

    def _claim_cycle(self, timeout: float | None = None) -> bool:
        """Wait until a cycle may run and consume any single-refresh request.

        Returns ``False`` if the viewer was closed or ``timeout`` expired.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._closed or self._ready(), timeout)
            if self._closed or not self._ready():
                return False
            self._claimed_request = self._refresh_once
            self._refresh_once = False
            return True

    def _rearm_request(self) -> None:
        with self._cond:
            self._refresh_once = True

    def _pace(self, delay: float, failed: bool = False) -> None:
        if delay <= 0:
            return
        with self._cond:
            if self._closed:
                return
            if failed:
                if self._auto_refresh or self._refresh_once:
                    self._cond.wait_for(lambda: self._closed, timeout=delay)
            elif self._auto_refresh:
                self._cond.wait_for(
                    lambda: self._closed or self._refresh_once, timeout=delay,
                )

    def _run(self) -> None:
        logger.info("Polling %s", self.config.base_url)
        while self._claim_cycle():
            if self.run_cycle():
                self._pace(self.config.interval)
                continue
            if self._claimed_request:
                self._rearm_request()
            self._pace(self.config.retry_delay, failed=True)
        logger.info("Polling stopped after %d frames", self.frames)
