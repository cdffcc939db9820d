"""Background streaming of app logs while a command waits for convergence."""

import threading
from typing import Optional

from appctl.errors import ClusterError
from appctl.logging import StructuredLogger

logger = StructuredLogger("log_streamer")


class NullLogStreamer:
    """Log streamer that streams nothing."""

    def start(self, app_name: str) -> None:
        pass

    def stop(self) -> None:
        pass


class TailedLogStreamer:
    """Streams an app's logs to the terminal on a daemon thread.

    start() is fire-and-forget; stop() stops output immediately even if the
    underlying HTTP stream is still blocked waiting for the next line.
    """

    def __init__(self, cluster, ui):
        """
        Args:
            cluster: ClusterClient providing stream_logs()
            ui: TerminalUI to write log lines to
        """
        self.cluster = cluster
        self.ui = ui
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._stop_event.is_set()

    def start(self, app_name: str) -> None:
        """Start streaming logs for `app_name` in the background."""
        if self.running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._stream, args=(app_name,), daemon=True)
        self._thread.start()
        logger.debug("Log streaming started", fields={"app": app_name})

    def stop(self) -> None:
        """Stop streaming. Safe to call when not started."""
        if self._thread is None:
            return

        self._stop_event.set()
        self._thread.join(timeout=0.5)
        self._thread = None
        logger.debug("Log streaming stopped")

    def _stream(self, app_name: str) -> None:
        try:
            for line in self.cluster.stream_logs(app_name):
                if self._stop_event.is_set():
                    break
                self.ui.say_line(line)
        except ClusterError as e:
            if not self._stop_event.is_set():
                logger.warning("Log streaming failed", fields={"app": app_name, "error": str(e)})
