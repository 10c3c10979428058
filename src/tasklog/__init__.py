"""tasklog: live task-status lines with differential terminal repaint."""

# Configuration
from tasklog.config import Config

# Logger front-end
from tasklog.logger import Logger, log_errors

# Diff rendering
from tasklog.render import (
    StreamSize,
    count_new_lines,
    optimized_update,
    split_new_lines,
    stream_size,
)

# Render loop
from tasklog.renderer import (
    OutputGate,
    Renderer,
    RendererContext,
    get_renderer,
    set_renderer,
)

# Spinner
from tasklog.spinner import Spinner

# Line formats
from tasklog.style import set_color_enabled, sprint_level, sprint_task

# Tasks
from tasklog.task import (
    END_STATES,
    START_STATES,
    DisposeGuard,
    Err,
    Ok,
    RunnerOutcome,
    Task,
    TaskEnd,
    TaskRegistry,
    TaskState,
    TaskStateEnd,
    TaskStateStart,
    classify,
)

# Terminal
from tasklog.terminal import ProcessTerminal, Terminal

# Utilities
from tasklog.utils import AnsiState, strip_ansi

__all__ = [
    # Configuration
    "Config",
    # Logger front-end
    "Logger",
    "log_errors",
    # Diff rendering
    "StreamSize",
    "count_new_lines",
    "optimized_update",
    "split_new_lines",
    "stream_size",
    # Render loop
    "OutputGate",
    "Renderer",
    "RendererContext",
    "get_renderer",
    "set_renderer",
    # Spinner
    "Spinner",
    # Line formats
    "set_color_enabled",
    "sprint_level",
    "sprint_task",
    # Tasks
    "END_STATES",
    "START_STATES",
    "DisposeGuard",
    "Err",
    "Ok",
    "RunnerOutcome",
    "Task",
    "TaskEnd",
    "TaskRegistry",
    "TaskState",
    "TaskStateEnd",
    "TaskStateStart",
    "classify",
    # Terminal
    "ProcessTerminal",
    "Terminal",
    # Utilities
    "AnsiState",
    "strip_ansi",
]
