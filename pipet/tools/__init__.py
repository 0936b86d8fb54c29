"""Tool system — the run_shell declaration and the sandbox that executes it."""
from pipet.tools.registry import RUN_SHELL_TOOL, ToolDefinition
from pipet.tools.shell import (
    BlockedCommandError,
    CommandError,
    CommandFailedError,
    CommandSandbox,
    CommandTimeoutError,
)

__all__ = [
    "RUN_SHELL_TOOL",
    "ToolDefinition",
    "BlockedCommandError",
    "CommandError",
    "CommandFailedError",
    "CommandSandbox",
    "CommandTimeoutError",
]
