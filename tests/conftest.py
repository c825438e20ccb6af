"""
Global test fixtures for tickthrottle

Provides reusable fixtures for all test modules.
"""

import os
import sys
import uuid
from pathlib import Path

import pytest

# Add src and tests to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / 'src'))
sys.path.insert(0, str(project_root / 'tests'))

import tickthrottle.config.loader as config_loader
from tickthrottle.config import ThrottleSettings
from tickthrottle.storage import InMemoryCounterStore, SharedMemoryCounterStore
from tickthrottle.throttle import ThrottleEngine
from mocks.mock_task_invoker import RecordingTaskInvoker


@pytest.fixture(autouse=True)
def clear_config_cache():
    """Clear config cache before each test to ensure isolation"""
    config_loader.reset_config_cache()
    yield
    config_loader.reset_config_cache()


@pytest.fixture
def throttle_settings():
    """Small limits: 2 ticks per period, 2 executions, 6 periods per cycle"""
    return ThrottleSettings(
        ticks_per_period=2,
        max_executions=2,
        periods_in_cycle=6,
    )


@pytest.fixture
def memory_store():
    return InMemoryCounterStore()


@pytest.fixture
def invoker():
    return RecordingTaskInvoker()


@pytest.fixture
def engine(throttle_settings, memory_store, invoker):
    """Engine wired to in-memory counters and a recording invoker"""
    return ThrottleEngine(
        settings=throttle_settings,
        store=memory_store,
        invoker=invoker,
        env_id='test',
        tick_event='TICK_5',
    )


@pytest.fixture
def shm_prefix():
    """Unique shared memory prefix; removes any segments the test left behind"""
    prefix = f"tt_test_{uuid.uuid4().hex[:10]}"
    yield prefix

    store = SharedMemoryCounterStore(prefix=prefix)
    for slot_id in range(10):
        if store.peek(slot_id, 1) is not None:
            store.open(slot_id, 1).reset()


@pytest.fixture
def config_file(tmp_path):
    """
    Write a config file and return its path

    Usage:
        path = config_file("throttle: ...")
        path = config_file()  # valid config, in-memory counters
    """
    def _create(data: str | None = None):
        path = tmp_path / 'config.yaml'
        path.write_text(data if data is not None else VALID_CONFIG, encoding='utf-8')
        return path

    return _create


VALID_CONFIG = """
listener:
  tick_event: TICK_5
throttle:
  ticks_per_period: 2
  max_executions: 2
  periods_in_cycle: 6
storage:
  backend: memory
  name_prefix: tickthrottle
  tick_slot: 2
  execution_slot: 3
task:
  command: ["true"]
  env_var: APP_ENV
logging:
  level: INFO
  file: null
"""


@pytest.fixture
def clean_env():
    """Snapshot os.environ and restore it after the test"""
    saved = dict(os.environ)
    yield os.environ
    os.environ.clear()
    os.environ.update(saved)
