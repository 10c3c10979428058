"""Render loop: repaints the task block until every task has ended.

The ``Renderer`` owns a terminal, a ``TaskRegistry`` and a
``RendererContext``.  On an interactive terminal each frame diffs the new
snapshot against the one on screen and writes only the patch.  On a plain
stream (pipes, CI logs) every task is printed once when it starts and once
when it ends, and nothing is ever overwritten.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field

from tasklog.config import Config
from tasklog.render import StreamSize, count_new_lines, optimized_update, stream_size
from tasklog.style import set_color_enabled
from tasklog.task import Task, TaskRegistry
from tasklog.terminal import ProcessTerminal, Terminal
from tasklog.utils import SGR_RESET, ansi_state_at, strip_ansi

log = logging.getLogger(__name__)

_ERASE_SCREEN_TAIL = "\x1b[J"


class OutputGate:
    """Non-reentrant lock serialising terminal writes.

    Held for the duration of one frame or one log write, never across a
    sleep, so threads logging alongside the loop only wait for a write.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def acquire(self) -> None:
        self._lock.acquire()

    def release(self) -> None:
        self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()

    def __enter__(self) -> OutputGate:
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


@dataclass
class RendererContext:
    """What the renderer knows about the screen between frames."""

    # Snapshot currently on screen, with the cursor right after it.
    previous: str = ""
    logged_started: set[Task] = field(default_factory=set)
    logged_ended: set[Task] = field(default_factory=set)
    # Log lines waiting to be printed above the live block.
    queued: list[str] = field(default_factory=list)
    gate: OutputGate = field(default_factory=OutputGate)

    def reset(self) -> None:
        self.previous = ""
        self.logged_started.clear()
        self.logged_ended.clear()


class Renderer:
    """Drives repaints of a task registry onto a terminal.

    Parameters
    ----------
    terminal:
        Output sink, a ``ProcessTerminal`` on stdout by default.
    registry:
        Tasks to display.  The renderer installs itself as the registry's
        change listener.
    config:
        Settings, read from the environment when omitted.
    interactive:
        Force the interactive (``True``) or append-only (``False``) path;
        ``None`` defers to the config and then to the terminal probe.
    interval:
        Seconds between frames.
    no_loop:
        Never start the background loop; frames are rendered by explicit
        ``render`` calls only.
    """

    def __init__(
        self,
        terminal: Terminal | None = None,
        *,
        registry: TaskRegistry | None = None,
        context: RendererContext | None = None,
        config: Config | None = None,
        interactive: bool | None = None,
        interval: float | None = None,
        no_loop: bool = False,
    ) -> None:
        self.config = config if config is not None else Config.from_env()
        self.terminal: Terminal = (
            terminal
            if terminal is not None
            else ProcessTerminal(write_log_path=self.config.write_log_path)
        )
        self.registry = registry if registry is not None else TaskRegistry()
        self.context = context if context is not None else RendererContext()
        self.interval = interval if interval is not None else self.config.interval
        self._interactive = (
            interactive if interactive is not None else self.config.interactive
        )
        self.no_loop = no_loop

        self._loop_lock: asyncio.Lock | None = None
        self._loop_lock_owner: asyncio.AbstractEventLoop | None = None
        self._runner: asyncio.Task[None] | None = None
        # Guards the hand-over between the loop and synchronous rendering.
        self._loop_guard = threading.Lock()
        self._looping = False

        self.registry.on_change = self._on_task_change

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    def is_interactive(self) -> bool:
        if self._interactive is not None:
            return self._interactive
        return self.terminal.is_interactive()

    def size(self) -> StreamSize:
        return stream_size(self.terminal.columns, self.terminal.rows)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def write(self, text: str) -> None:
        """Write raw text, above the live block if one is on screen."""
        ctx = self.context
        with ctx.gate:
            queued = self.is_interactive() and bool(ctx.previous)
            if queued:
                ctx.queued.append(text)
            else:
                self.terminal.write(text)
        if queued:
            self.request()

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    def render(self) -> bool:
        """Render one frame and return whether any task is still running."""
        if self.is_interactive():
            self._render_frame()
        else:
            self._render_ci()
        return self.registry.is_pending()

    def _render_frame(self) -> None:
        size = self.size()
        ctx = self.context

        with ctx.gate:
            snapshot = self.registry.sprint_list()
            if ctx.queued:
                self.terminal.write(self._flush_queued(snapshot, size))
                ctx.previous = snapshot
                return

            patch = optimized_update(ctx.previous, snapshot, size)
            if patch:
                self.terminal.write(patch)
            # A blank frame writes nothing, so the old block is still there.
            if strip_ansi(snapshot) or not strip_ansi(ctx.previous):
                ctx.previous = snapshot

    def _flush_queued(self, snapshot: str, size: StreamSize) -> str:
        ctx = self.context
        lines = "".join(ctx.queued)
        ctx.queued.clear()
        if not lines.endswith("\n"):
            lines += "\n"
        log.debug("flushing %d queued bytes above the task block", len(lines))

        out: list[str] = []
        if ctx.previous:
            up = count_new_lines(ctx.previous, size)
            out.append(f"\x1b[{up}F" if up else "\r")
            if ansi_state_at(ctx.previous).has_active_codes():
                out.append(SGR_RESET)
            out.append(_ERASE_SCREEN_TAIL)
        out.append(lines)
        out.append(snapshot)
        return "".join(out)

    def _render_ci(self) -> None:
        ctx = self.context
        with ctx.gate:
            out: list[str] = []
            for task in self.registry:
                state = task.state
                if state == "idle":
                    continue
                seen = ctx.logged_started if state == "started" else ctx.logged_ended
                if task in seen:
                    continue
                seen.add(task)
                line = task.render(with_suffix=False)
                if line:
                    out.append(line + "\n")
            if out:
                self.terminal.write("".join(out))

    def drain(self) -> None:
        """Render a final frame and forget everything that was shown."""
        self.render()
        self.registry.clear_finished()
        self.context.reset()
        log.debug("render loop drained")

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._loop_lock is None or self._loop_lock_owner is not loop:
            self._loop_lock = asyncio.Lock()
            self._loop_lock_owner = loop
        return self._loop_lock

    async def run(self, force: bool = False) -> None:
        """Render at a fixed interval until no task is running, then drain.

        Only one loop runs at a time; a second call waits for the first to
        finish.  With ``no_loop`` set the call returns at once unless
        *force* is given.
        """
        if self.no_loop and not force:
            return

        async with self._lock():
            interactive = self.is_interactive()
            if interactive:
                with self.context.gate:
                    self.terminal.hide_cursor()
            with self._loop_guard:
                self._looping = True
            log.debug("render loop started")
            try:
                while True:
                    await asyncio.sleep(self.interval)
                    if self.render():
                        continue
                    with self._loop_guard:
                        # Another thread may have started a task since the frame.
                        if not self.registry.is_pending():
                            self._stop()
                            break
            finally:
                with self._loop_guard:
                    if self._looping:
                        self._stop()
                if interactive:
                    with self.context.gate:
                        self.terminal.show_cursor()

    def request(self) -> None:
        """Make sure a loop will pick up the latest changes.

        While a loop is running, from any thread, the change waits for its
        next frame.  Otherwise, without a running event loop in the calling
        thread, the frame is rendered synchronously.
        """
        if self.no_loop:
            return
        with self._loop_guard:
            if self._looping:
                return
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                if not self.render() and any(t.state != "idle" for t in self.registry):
                    self.drain()
                return

        runner = self._runner
        if runner is None or runner.done() or runner.get_loop() is not loop:
            self._runner = loop.create_task(self.run())

    def _stop(self) -> None:
        self._looping = False
        self.drain()

    async def wait(self) -> None:
        """Wait for the current loop, if any, to finish."""
        runner = self._runner
        if runner is not None and not runner.done():
            await runner

    def _on_task_change(self, task: Task) -> None:
        if not self.is_interactive():
            self._render_ci()
        self.request()


# ---------------------------------------------------------------------------
# Default renderer
# ---------------------------------------------------------------------------

_default_renderer: Renderer | None = None


def get_renderer() -> Renderer:
    """Return the process-wide renderer, creating it on first use."""
    global _default_renderer
    if _default_renderer is None:
        _default_renderer = Renderer()
        set_color_enabled(_default_renderer.config.color)
    return _default_renderer


def set_renderer(renderer: Renderer | None) -> None:
    """Replace the process-wide renderer (``None`` recreates it lazily)."""
    global _default_renderer
    _default_renderer = renderer
