from .task_invoker import (
    DryRunTaskInvoker,
    SubprocessTaskInvoker,
    TaskExecution,
    TaskInvoker,
    TaskStatus,
)

__all__ = [
    "TaskInvoker",
    "SubprocessTaskInvoker",
    "DryRunTaskInvoker",
    "TaskExecution",
    "TaskStatus",
]
