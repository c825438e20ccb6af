"""
Throttle Engine

Turns a stream of supervisord TICK events into at most `max_executions`
task runs per cycle, one run per period:

    tick       one TICK_* event from supervisord
    period     `ticks_per_period` ticks; a task run may happen at its end
    cycle      `periods_in_cycle` periods; the execution cap resets after it

Example (production values): TICK_60, 10 ticks per period, 10 executions,
1008 periods per cycle -> the task runs every 10 minutes for the first 100
minutes of each week.

The execution counter advances on every period boundary, including the
ones past the cap, because the cycle end is detected by that same counter
reaching `periods_in_cycle`.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional

from tickthrottle.config.loader import TICK_EVENTS, ThrottleSettings
from tickthrottle.errors import CounterStoreError
from tickthrottle.scheduler.task_invoker import TaskInvoker
from tickthrottle.storage.counters import CounterStore

logger = logging.getLogger(__name__)

PROCESS_STATE_RUNNING = "PROCESS_STATE_RUNNING"


class Outcome(str, Enum):
    """Result of handling one event, reported back to supervisord"""
    SUCCESS = "SUCCESS"
    BUSINESS_FAILURE = "BUSINESS_FAILURE"
    TERMINATE = "TERMINATE"


@dataclass
class CounterSnapshot:
    """Persisted counter values; None means the counter does not exist yet"""
    ticks: Optional[int]
    executions: Optional[int]


class ThrottleEngine:
    """
    Decide, per event, how counters move and whether the task runs

    All state lives in the injected CounterStore; the engine itself holds
    only configuration, so a restarted listener picks up where the last
    one stopped.
    """

    def __init__(
        self,
        settings: ThrottleSettings,
        store: CounterStore,
        invoker: TaskInvoker,
        env_id: str,
        tick_event: str = "TICK_5"
    ):
        """
        Initialize throttle engine

        Args:
            settings: Period, cap and cycle lengths plus counter slots
            store: Counter storage capability
            invoker: Runs the scheduled task
            env_id: Environment identifier handed to every task run
            tick_event: Which TICK_* event counts as one tick
        """
        if tick_event not in TICK_EVENTS:
            raise ValueError(f"tick_event must be one of {list(TICK_EVENTS)}, got '{tick_event}'")

        self.settings = settings
        self.store = store
        self.invoker = invoker
        self.env_id = env_id
        self.tick_event = tick_event

    @property
    def supported_events(self) -> FrozenSet[str]:
        return frozenset({self.tick_event, PROCESS_STATE_RUNNING})

    def handle(self, event_name: str) -> Outcome:
        """
        Handle one supervisord event

        Returns:
            SUCCESS for handled events (task failures included),
            BUSINESS_FAILURE when the counters could not be updated,
            TERMINATE for events this engine does not understand
        """
        try:
            if event_name == PROCESS_STATE_RUNNING:
                self.rearm()
                return Outcome.SUCCESS

            if event_name == self.tick_event:
                self._on_tick()
                return Outcome.SUCCESS
        except CounterStoreError as e:
            logger.error(f"Counter update failed while handling {event_name}: {e}")
            return Outcome.BUSINESS_FAILURE

        logger.warning(f"Unexpected event for throttle engine: {event_name}")
        return Outcome.TERMINATE

    def rearm(self) -> None:
        """Delete both counters so the next tick starts a fresh period and cycle"""
        s = self.settings
        with self.store.open(s.tick_slot, s.tick_slot_size) as ticks:
            ticks.reset()
        with self.store.open(s.execution_slot, s.execution_slot_size) as executions:
            executions.reset()
        logger.info("Counters rearmed (ticks=0, executions=0)")

    def _on_tick(self) -> None:
        s = self.settings

        with self.store.open(s.tick_slot, s.tick_slot_size) as ticks:
            tick_count = ticks.increment()
            if tick_count < s.ticks_per_period:
                logger.debug(f"Tick {tick_count}/{s.ticks_per_period}")
                return
            ticks.reset()

        with self.store.open(s.execution_slot, s.execution_slot_size) as executions:
            execution_count = executions.increment()
            not_maxed_executions = execution_count <= s.max_executions
            cycle_complete = execution_count == s.periods_in_cycle

            if not_maxed_executions:
                logger.info(
                    f"Period {execution_count}/{s.periods_in_cycle}: "
                    f"running task ({execution_count}/{s.max_executions})"
                )
                self.invoker.invoke(self.env_id)

            if cycle_complete:
                executions.reset()
                logger.info(f"Cycle of {s.periods_in_cycle} periods complete, execution cap rearmed")

    def snapshot(self) -> CounterSnapshot:
        s = self.settings
        return CounterSnapshot(
            ticks=self.store.peek(s.tick_slot, s.tick_slot_size),
            executions=self.store.peek(s.execution_slot, s.execution_slot_size),
        )
