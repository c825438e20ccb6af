"""
Task invocation.

Runs the scheduled command once per allowed period. The listener waits for
the command to exit but never acts on its result: a failed task still
counts as an execution for the cycle.
"""

import logging
import os
import subprocess
import time
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

# Child output is captured; only this much of it reaches the log
_OUTPUT_TAIL_CHARS = 2000


class TaskStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass
class TaskExecution:
    """Record of one task launch"""
    command: List[str]
    env_id: str
    status: TaskStatus
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    returncode: Optional[int] = None
    duration_seconds: float = 0.0
    error_message: Optional[str] = None


class TaskInvoker(Protocol):
    def invoke(self, env_id: str) -> TaskExecution:
        ...


class SubprocessTaskInvoker:
    """
    Launch the task as a child process

    The environment identifier is exported as `env_var` (APP_ENV for a
    Symfony console command). Child stdout/stderr are captured so they can
    never interleave with the supervisord protocol on our stdout.
    """

    def __init__(
        self,
        command: Sequence[str],
        env_var: str = "APP_ENV",
        cwd: Optional[str] = None
    ):
        if not command:
            raise ValueError("Task command must not be empty")
        self.command = list(command)
        self.env_var = env_var
        self.cwd = cwd

    def invoke(self, env_id: str) -> TaskExecution:
        env = os.environ.copy()
        env[self.env_var] = env_id

        execution = TaskExecution(
            command=self.command,
            env_id=env_id,
            status=TaskStatus.SUCCESS,
        )
        started = time.monotonic()
        logger.info(f"Task started: {' '.join(self.command)} ({self.env_var}={env_id})")

        try:
            result = subprocess.run(
                self.command,
                env=env,
                cwd=self.cwd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            execution.duration_seconds = time.monotonic() - started
            execution.status = TaskStatus.FAILED
            execution.error_message = str(e)
            logger.error(f"Task launch failed: {self.command[0]} (error={e})")
            return execution

        execution.duration_seconds = time.monotonic() - started
        execution.returncode = result.returncode

        if result.returncode == 0:
            logger.info(
                f"Task completed: {self.command[0]} "
                f"(duration={execution.duration_seconds:.2f}s)"
            )
        else:
            execution.status = TaskStatus.FAILED
            execution.error_message = (result.stderr or "")[-_OUTPUT_TAIL_CHARS:]
            logger.warning(
                f"Task exited with code {result.returncode}: {self.command[0]} "
                f"(duration={execution.duration_seconds:.2f}s)"
            )
            if execution.error_message:
                logger.debug(f"Task stderr: {execution.error_message}")

        if result.stdout:
            logger.debug(f"Task stdout: {result.stdout[-_OUTPUT_TAIL_CHARS:]}")

        return execution


class DryRunTaskInvoker:
    """Log the launch instead of running it"""

    def __init__(self, command: Sequence[str], env_var: str = "APP_ENV"):
        self.command = list(command)
        self.env_var = env_var

    def invoke(self, env_id: str) -> TaskExecution:
        logger.info(f"[DRY RUN] Would run: {' '.join(self.command)} ({self.env_var}={env_id})")
        return TaskExecution(
            command=self.command,
            env_id=env_id,
            status=TaskStatus.SKIPPED,
        )
