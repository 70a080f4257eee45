# =============================================================================
# Training Worker
# =============================================================================
"""
Background execution context for the TrainingScheduler.

The scheduler lives on its own thread, running its own asyncio event
loop. The host talks to it only through messages:

    host thread                         worker thread
    -----------                         -------------
    worker.post(StartCommand(10)) ──▶  loop.call_soon_threadsafe(handle)
                                        scheduler trains, call_later(...)
    worker.get(timeout=1.0)       ◀──  responses.put(BatchUpdate(...))

Commands are applied strictly in arrival order (call_soon_threadsafe is
FIFO), and the host thread never blocks on training.
"""

import asyncio
import logging
import queue
import threading
from typing import List, Optional

from george_rl.config import WorldConfig
from george_rl.environment.world import Grid
from george_rl.training.messages import Command, ErrorResponse, Response
from george_rl.training.scheduler import TrainingScheduler

logger = logging.getLogger(__name__)


class TrainingWorker:
    """
    Thread + event loop hosting one TrainingScheduler.

    Example:
    --------
    >>> with TrainingWorker() as worker:
    ...     worker.post(ResetCommand(grid, config))
    ...     worker.post(StartCommand(batch_size=10))
    ...     response = worker.get(timeout=5.0)
    """

    def __init__(
        self,
        grid: Optional[Grid] = None,
        config: Optional[WorldConfig] = None,
        seed: Optional[int] = None,
        name: str = "george-rl-training",
    ):
        self.responses: "queue.Queue[Response]" = queue.Queue()
        self._grid = grid
        self._config = config
        self._seed = seed
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()
        self.scheduler: Optional[TrainingScheduler] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _run_loop_forever(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self.scheduler = TrainingScheduler(
            self.responses.put,
            loop,
            grid=self._grid,
            config=self._config,
            seed=self._seed,
        )
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            loop.close()
            logger.debug("Training loop closed")

    def start(self) -> "TrainingWorker":
        """Start the background thread (idempotent)."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return self
            self._ready.clear()
            self._thread = threading.Thread(
                target=self._run_loop_forever,
                name=self._name,
                daemon=True,
            )
            self._thread.start()
            if not self._ready.wait(timeout=5):
                raise RuntimeError("Timed out starting training event loop")
        return self

    def close(self, timeout: float = 5.0) -> None:
        """Stop the event loop and join the thread."""
        loop = self._loop
        thread = self._thread
        if loop is None or thread is None:
            return
        if not loop.is_closed():
            loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("Training thread did not stop within %.1fs", timeout)
        self._loop = None
        self._thread = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def __enter__(self) -> "TrainingWorker":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Messaging
    # -------------------------------------------------------------------------

    def post(self, command: Command) -> None:
        """Queue a command for the scheduler. Returns immediately."""
        if not self.is_alive:
            self.start()
        self._loop.call_soon_threadsafe(self._dispatch, command)

    def _dispatch(self, command: Command) -> None:
        # handle() already converts failures; this guards the loop itself
        try:
            self.scheduler.handle(command)
        except Exception as exc:
            logger.exception("Scheduler crashed on %r", command)
            self.responses.put(
                ErrorResponse(str(exc) or type(exc).__name__, generation=self.scheduler.state.generation)
            )

    def get(self, timeout: Optional[float] = None) -> Optional[Response]:
        """Next response, or None if none arrived within timeout."""
        try:
            return self.responses.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[Response]:
        """All responses currently waiting, without blocking."""
        items = []
        while True:
            try:
                items.append(self.responses.get_nowait())
            except queue.Empty:
                return items
