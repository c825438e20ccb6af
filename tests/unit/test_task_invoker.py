"""
Unit tests for task invocation

Uses the running interpreter as the "task" so no external tools are needed.
"""

import sys

import pytest

from tickthrottle.scheduler.task_invoker import (
    DryRunTaskInvoker,
    SubprocessTaskInvoker,
    TaskStatus,
)


def _python(code):
    return [sys.executable, '-c', code]


class TestSubprocessTaskInvoker:
    """Test SubprocessTaskInvoker"""

    def test_env_id_is_exported(self):
        """APP_ENV carries the environment identifier"""
        invoker = SubprocessTaskInvoker(
            _python("import os, sys; sys.exit(0 if os.environ['APP_ENV'] == 'prod' else 3)")
        )
        execution = invoker.invoke('prod')

        assert execution.status == TaskStatus.SUCCESS
        assert execution.returncode == 0
        assert execution.env_id == 'prod'
        assert execution.duration_seconds >= 0

    def test_custom_env_var(self):
        invoker = SubprocessTaskInvoker(
            _python("import os, sys; sys.exit(0 if os.environ['DEPLOY_ENV'] == 'qa' else 3)"),
            env_var='DEPLOY_ENV',
        )

        assert invoker.invoke('qa').returncode == 0

    def test_non_zero_exit_is_recorded(self):
        """A failing task is reported as FAILED, never raised"""
        invoker = SubprocessTaskInvoker(_python("import sys; sys.stderr.write('boom'); sys.exit(5)"))
        execution = invoker.invoke('prod')

        assert execution.status == TaskStatus.FAILED
        assert execution.returncode == 5
        assert 'boom' in execution.error_message

    def test_launch_failure_is_recorded(self, tmp_path):
        """A missing executable does not raise"""
        invoker = SubprocessTaskInvoker([str(tmp_path / 'no-such-binary')])
        execution = invoker.invoke('prod')

        assert execution.status == TaskStatus.FAILED
        assert execution.returncode is None
        assert execution.error_message

    def test_child_output_never_reaches_stdout(self, capfd):
        """Task output must not leak into the supervisord protocol channel"""
        invoker = SubprocessTaskInvoker(_python("print('RESULT 2'); print('noise')"))
        invoker.invoke('prod')

        captured = capfd.readouterr()
        assert captured.out == ''

    def test_cwd(self, tmp_path):
        invoker = SubprocessTaskInvoker(
            _python(f"import os, sys; sys.exit(0 if os.getcwd() == {str(tmp_path.resolve())!r} else 4)"),
            cwd=str(tmp_path),
        )

        assert invoker.invoke('prod').returncode == 0

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            SubprocessTaskInvoker([])


class TestDryRunTaskInvoker:
    """Test DryRunTaskInvoker"""

    def test_nothing_runs(self, tmp_path):
        marker = tmp_path / 'ran'
        invoker = DryRunTaskInvoker(['touch', str(marker)])
        execution = invoker.invoke('prod')

        assert execution.status == TaskStatus.SKIPPED
        assert execution.command == ['touch', str(marker)]
        assert not marker.exists()
