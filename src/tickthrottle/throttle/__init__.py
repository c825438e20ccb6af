from .engine import PROCESS_STATE_RUNNING, CounterSnapshot, Outcome, ThrottleEngine

__all__ = ["ThrottleEngine", "Outcome", "CounterSnapshot", "PROCESS_STATE_RUNNING"]
