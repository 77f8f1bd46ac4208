"""
File-change notifier that reloads the configuration script.

Polls the script's modification time and size on a fixed interval and
calls :meth:`ConfigBridge.reload` whenever either changes.  A vanished file
is reported once and ignored until it reappears; the serving generation is
never dropped because of the watcher.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from microsim.bridge import ConfigBridge

logger = logging.getLogger(__name__)


class ScriptWatcher:
    """Reloads the bridge when its script file changes.

    Args:
        bridge: The bridge to reload.
        interval_s: Seconds between file checks.
        path: File to watch, the bridge's script when omitted.
    """

    def __init__(
        self,
        bridge: ConfigBridge,
        *,
        interval_s: float = 1.0,
        path: Path | None = None,
    ) -> None:
        self._bridge = bridge
        self._interval_s = interval_s
        self.path = path if path is not None else bridge.path
        self._stamp = self._read_stamp()
        self._missing_reported = False

    def _read_stamp(self) -> tuple[int, int] | None:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size

    def check(self) -> bool:
        """Reload the bridge if the file changed since the last check.

        Returns:
            True if a reload was attempted.
        """
        stamp = self._read_stamp()
        if stamp is None:
            if not self._missing_reported:
                logger.warning("Config script %s is missing", self.path)
                self._missing_reported = True
            return False
        self._missing_reported = False
        if stamp == self._stamp:
            return False
        self._stamp = stamp
        logger.info("Config script %s changed, reloading", self.path)
        self._bridge.reload()
        return True

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Check the file on every interval until *shutdown_event* is set."""
        logger.info(
            "Watching %s for changes (interval=%ss)", self.path, self._interval_s
        )
        while not shutdown_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    shutdown_event.wait(),
                    timeout=self._interval_s,
                )
            if shutdown_event.is_set():
                break
            try:
                self.check()
            except OSError:
                logger.warning("Failed to stat %s", self.path, exc_info=True)
        logger.info("Config watcher stopped")
