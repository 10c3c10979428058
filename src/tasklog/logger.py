"""Logger front-end: level lines and task factory."""

from __future__ import annotations

import functools
import inspect
import traceback
from typing import Any, Callable, TypeVar

from tasklog.renderer import Renderer, get_renderer
from tasklog.style import sprint_level, sprint_task
from tasklog.task import Task, TaskEnd

F = TypeVar("F", bound=Callable[..., Any])


class Logger:
    """Prints prefixed level lines and creates tasks that share the prefix.

    Lines go through the renderer, so they land above a live task block
    instead of being torn into it.
    """

    def __init__(
        self,
        prefix: str,
        *,
        disabled: bool = False,
        renderer: Renderer | None = None,
    ) -> None:
        self.prefix = f"[{prefix}]"
        self.disabled = disabled
        self._renderer = renderer

    @property
    def renderer(self) -> Renderer:
        return self._renderer if self._renderer is not None else get_renderer()

    # -- raw output ---------------------------------------------------------

    def print(self, message: str) -> None:
        if self.disabled:
            return
        self.renderer.write(message)

    def println(self, message: str) -> None:
        self.print(message + "\n")

    # -- formatting ---------------------------------------------------------

    def sprint_level(self, message: str, level: str | None = None) -> str:
        return sprint_level(self.prefix, message, level)

    def sprint_task(self, text: str) -> dict[str, str]:
        return sprint_task(self.prefix, text)

    # -- levels -------------------------------------------------------------

    def info(self, message: str) -> None:
        self.println(self.sprint_level(message, "info"))

    def warn(self, message: str) -> None:
        self.println(self.sprint_level(message, "warn"))

    def error(self, message: str) -> None:
        self.println(self.sprint_level(message, "error"))

    def success(self, message: str) -> None:
        self.println(self.sprint_level(message, "success"))

    # -- tasks --------------------------------------------------------------

    def task(self, text: str, **options: Any) -> Task:
        """Create a task carrying this logger's prefix.

        Keyword options are passed to ``Task``; a disabled logger creates
        disabled tasks.
        """
        options.setdefault("disabled", self.disabled)
        parent = options.get("parent")
        if "registry" not in options:
            options["registry"] = (
                parent.registry if parent is not None else self.renderer.registry
            )
        return Task(text, prefix=self.prefix, **options)


def _format_error(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()


def log_errors(logger: Logger) -> Callable[[F], F]:
    """Decorate a runner so that its errors are logged before propagating.

    ``TaskEnd`` is a state choice rather than an error and passes through
    silently.
    """

    def decorate(runner: F) -> F:
        if inspect.iscoroutinefunction(runner):

            @functools.wraps(runner)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    return await runner(*args, **kwargs)
                except TaskEnd:
                    raise
                except Exception as exc:
                    logger.error(_format_error(exc))
                    raise

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(runner)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return runner(*args, **kwargs)
            except TaskEnd:
                raise
            except Exception as exc:
                logger.error(_format_error(exc))
                raise

        return wrapper  # type: ignore[return-value]

    return decorate
