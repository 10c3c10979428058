"""Tasks, their lifecycle states, and the ordered task registry.

A ``Task`` is a named unit of displayed progress.  Its line is derived from
its state every time the registry is printed, so mutating ``text`` or
``state`` is all a caller does; the renderer picks the change up on the
next frame.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Coroutine,
    Iterator,
    Literal,
    Union,
)

from tasklog.style import sprint_task

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------

TaskStateStart = Literal["idle", "started"]
TaskStateEnd = Literal["completed", "aborted", "failed", "skipped"]
TaskState = Union[TaskStateStart, TaskStateEnd]

START_STATES: frozenset[str] = frozenset({"idle", "started"})
END_STATES: frozenset[str] = frozenset({"completed", "aborted", "failed", "skipped"})
STATES: frozenset[str] = START_STATES | END_STATES


def _check_state(state: str) -> None:
    if state not in STATES:
        raise ValueError(f"unknown task state: {state!r}")


def _check_end_state(state: str) -> None:
    if state not in END_STATES:
        raise ValueError(f"not an end state: {state!r}")


# ---------------------------------------------------------------------------
# Runner outcomes
# ---------------------------------------------------------------------------


class TaskEnd(Exception):
    """Raised from a runner to end its task in *state*.

    With no state the task ends in its dispose state.
    """

    def __init__(self, state: TaskStateEnd | None = None) -> None:
        if state is not None:
            _check_end_state(state)
        super().__init__(state)
        self.state = state


@dataclass(frozen=True)
class Ok:
    value: Any = None


@dataclass(frozen=True)
class Err:
    error: BaseException


RunnerOutcome = Union[Ok, Err]


def classify(outcome: RunnerOutcome, dispose_state: TaskStateEnd) -> TaskStateEnd:
    """Map a runner outcome to the state its task ends in."""
    if isinstance(outcome, Ok):
        value = outcome.value
        if isinstance(value, str) and value in END_STATES:
            return value  # type: ignore[return-value]
        return dispose_state

    error = outcome.error
    if isinstance(error, TaskEnd):
        return error.state if error.state is not None else dispose_state
    log.debug("runner failed", exc_info=error)
    return "failed"


def _accepts_task(runner: Callable[..., Any]) -> bool:
    try:
        signature = inspect.signature(runner)
    except (TypeError, ValueError):
        return True
    return any(
        p.kind
        in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
            inspect.Parameter.VAR_POSITIONAL,
        )
        for p in signature.parameters.values()
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TaskRegistry:
    """Ordered collection of live tasks.

    Children are kept right after their parent's last descendant, so the
    printed list always reads top-down as a tree.
    """

    def __init__(self) -> None:
        self._tasks: list[Task] = []
        self.on_change: Callable[[Task], None] | None = None

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._tasks))

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task: object) -> bool:
        return any(t is task for t in self._tasks)

    def append(self, task: Task) -> None:
        parent = task.parent
        if parent is None or parent not in self:
            self._tasks.append(task)
            return
        index = next(i for i, t in enumerate(self._tasks) if t is parent) + 1
        while index < len(self._tasks) and self._tasks[index].is_descendant_of(parent):
            index += 1
        self._tasks.insert(index, task)

    def notify(self, task: Task) -> None:
        if self.on_change is not None:
            self.on_change(task)

    def is_pending(self) -> bool:
        """Return ``True`` while any task is running."""
        return any(t.state == "started" for t in self._tasks)

    def sprint_list(self) -> str:
        """Return the snapshot: one line per visible task, newline-terminated."""
        lines: list[str] = []
        for task in self._tasks:
            line = task.render()
            if line:
                lines.append(line + "\n")
        return "".join(lines)

    def clear_finished(self) -> None:
        """Drop every ended task; idle and running tasks stay registered."""
        self._tasks = [t for t in self._tasks if t.state in START_STATES]


def _default_registry() -> TaskRegistry:
    from tasklog.renderer import get_renderer

    return get_renderer().registry


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------


class Task:
    """A unit of work shown as one line while it is not idle.

    Parameters
    ----------
    text:
        Display label.  May be changed at any time.
    prefix:
        Badge of the owning logger, e.g. ``"[build]"``.
    state:
        Initial state, ``"idle"`` unless given.
    dispose_state:
        End state applied when a scope holding the task exits early.
    disabled:
        A disabled task keeps its state but always renders as ``""``.
    parent:
        Parent task; the new task is listed under it.
    indent:
        Nesting depth, ``parent.indent + 1`` by default.
    padding:
        String repeated ``indent`` times before the line, or a callable
        returning the whole left padding for a task.
    suffix:
        Callable returning extra text shown after a running task's line.
    registry:
        Registry to join, the parent's or the default renderer's otherwise.
    """

    def __init__(
        self,
        text: str,
        *,
        prefix: str = "",
        state: TaskState = "idle",
        dispose_state: TaskStateEnd = "completed",
        disabled: bool = False,
        parent: Task | None = None,
        indent: int | None = None,
        padding: str | Callable[[Task], str] = "  ",
        suffix: Callable[[], str] | None = None,
        registry: TaskRegistry | None = None,
    ) -> None:
        _check_state(state)
        _check_end_state(dispose_state)
        if indent is None:
            indent = parent.indent + 1 if parent is not None else 0
        if indent < 0:
            raise ValueError(f"indent must be non-negative, got {indent}")

        self.text = text
        self.prefix = prefix
        self.dispose_state: TaskStateEnd = dispose_state
        self.disabled = disabled
        self.parent = parent
        self.indent = indent
        self.padding = padding
        self.suffix = suffix
        self._state: TaskState = state

        if registry is None:
            registry = parent.registry if parent is not None else _default_registry()
        self.registry = registry
        registry.append(self)
        if state != "idle":
            registry.notify(self)

    def __repr__(self) -> str:
        return f"Task({self.text!r}, state={self._state!r})"

    # -- state --------------------------------------------------------------

    @property
    def state(self) -> TaskState:
        return self._state

    @state.setter
    def state(self, value: TaskState) -> None:
        _check_state(value)
        self._state = value
        self.registry.notify(self)

    def start(self) -> Task:
        self.state = "started"
        return self

    def end(self, state: TaskStateEnd) -> Task:
        _check_end_state(state)
        self.state = state
        return self

    def is_descendant_of(self, other: Task) -> bool:
        current = self.parent
        while current is not None:
            if current is other:
                return True
            current = current.parent
        return False

    # -- rendering ----------------------------------------------------------

    def sprint(self) -> dict[str, str]:
        """Return the line for every displayable state."""
        return sprint_task(self.prefix, self.text)

    def render(self, *, with_suffix: bool = True) -> str:
        """Return this task's line, or ``""`` when idle or disabled."""
        if self._state == "idle" or self.disabled:
            return ""
        line = self.sprint()[self._state]
        if with_suffix and self._state == "started" and self.suffix is not None:
            line = f"{line} {self.suffix()}"
        if callable(self.padding):
            return self.padding(self) + line
        return self.padding * self.indent + line

    # -- composition --------------------------------------------------------

    def task(self, text: str, **options: Any) -> Task:
        """Create a subtask listed under this one."""
        options.setdefault("prefix", self.prefix)
        options.setdefault("padding", self.padding)
        options.setdefault("disabled", self.disabled)
        return Task(text, parent=self, registry=self.registry, **options)

    # -- runners ------------------------------------------------------------

    def start_runner(
        self, runner: Callable[..., Any]
    ) -> Task | Coroutine[Any, Any, Task]:
        """Start the task, run *runner* and end the task with its outcome.

        The runner receives this task if it takes a positional argument.
        A coroutine runner makes this return a coroutine resolving to the
        task.  Exceptions become the ``failed`` state and are not raised;
        raise ``TaskEnd`` to pick the end state.  Cancellation and other
        ``BaseException``s abort the task and propagate.
        """
        self.start()
        try:
            result = runner(self) if _accepts_task(runner) else runner()
        except Exception as exc:
            self.end(classify(Err(exc), self.dispose_state))
            return self
        except BaseException:
            self.end("aborted")
            raise

        if inspect.isawaitable(result):
            return self._finish(result)
        self.end(classify(Ok(result), self.dispose_state))
        return self

    async def _finish(self, awaitable: Awaitable[Any]) -> Task:
        try:
            value = await awaitable
        except Exception as exc:
            self.end(classify(Err(exc), self.dispose_state))
        except BaseException:
            self.end("aborted")
            raise
        else:
            self.end(classify(Ok(value), self.dispose_state))
        return self

    # -- scoped disposal ----------------------------------------------------

    def scoped(self, dispose_state: TaskStateEnd | None = None) -> DisposeGuard:
        return DisposeGuard(self, dispose_state)

    def __enter__(self) -> Task:
        return self

    def __exit__(self, *exc_info: object) -> None:
        DisposeGuard(self).release()


class DisposeGuard:
    """Ends a still-running task in its dispose state when released.

    Releasing is idempotent and never overrides an end state that was
    already set.
    """

    def __init__(self, task: Task, dispose_state: TaskStateEnd | None = None) -> None:
        if dispose_state is None:
            dispose_state = task.dispose_state
        _check_end_state(dispose_state)
        self.task = task
        self.dispose_state: TaskStateEnd = dispose_state

    def release(self) -> None:
        if self.task.state in START_STATES:
            self.task.end(self.dispose_state)

    def __enter__(self) -> Task:
        return self.task

    def __exit__(self, *exc_info: object) -> None:
        self.release()

