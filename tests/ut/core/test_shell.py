"""shell.py run_cmd 单元测试"""

from __future__ import annotations

import os
import subprocess
import sys

import pytest

from pkgforge.core.exceptions import ExternalToolError
from pkgforge.utils.shell import LocalExecutor, run_cmd


def _py(code: str) -> list[str]:
    return [sys.executable, "-c", code]


class TestRunCmd:
    def test_lines_streamed(self, tmp_path) -> None:
        out: list[str] = []
        err: list[str] = []
        r = run_cmd(
            _py("import sys; print('a'); print('b'); print('oops', file=sys.stderr)"),
            cwd=str(tmp_path), on_stdout=out.append, on_stderr=err.append,
        )
        assert r.returncode == 0
        assert out == ["a", "b"]
        assert err == ["oops"]

    def test_failure_raises(self, tmp_path) -> None:
        with pytest.raises(ExternalToolError, match="cmd失败") as exc:
            run_cmd(_py("raise SystemExit(3)"), cwd=str(tmp_path))
        assert exc.value.returncode == 3

    def test_custom_label_in_error(self, tmp_path) -> None:
        with pytest.raises(ExternalToolError, match="wpkg --build失败"):
            run_cmd(_py("raise SystemExit(1)"), cwd=str(tmp_path), label="wpkg --build")

    def test_env_passed(self, tmp_path) -> None:
        env = {**os.environ, "MY_TEST_VAR": "42"}
        out: list[str] = []
        run_cmd(
            _py("import os; print(os.environ['MY_TEST_VAR'])"),
            cwd=str(tmp_path), env=env, on_stdout=out.append,
        )
        assert out == ["42"]

    def test_local_executor_returns_code(self, tmp_path) -> None:
        r = LocalExecutor().execute(_py("raise SystemExit(2)"), cwd=str(tmp_path))
        assert r.returncode == 2
        assert not r.success

    def test_local_executor_closes_pipes(self, tmp_path, monkeypatch) -> None:
        procs: list[subprocess.Popen] = []
        real_popen = subprocess.Popen

        def _popen(*args, **kwargs):
            proc = real_popen(*args, **kwargs)
            procs.append(proc)
            return proc

        monkeypatch.setattr(subprocess, "Popen", _popen)
        LocalExecutor().execute(_py("print('x')"), cwd=str(tmp_path))
        assert procs[0].stdout.closed and procs[0].stderr.closed
        assert procs[0].returncode == 0
