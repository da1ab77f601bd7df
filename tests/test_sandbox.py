import logging
import os
import sys
import threading
import time
import tracemalloc
from pathlib import Path

import pytest

from utils.exceptions import BadRequest, SandboxError
from utils.sandbox import TRUNCATION_NOTICE, ExecutionSandbox

posix_only = pytest.mark.skipif(os.name != "posix", reason="needs POSIX rlimits and sessions")


@pytest.fixture
def sandbox(sandbox_dir) -> ExecutionSandbox:
    box = ExecutionSandbox(sandbox_dir, python=sys.executable, timeout=10)
    box.ensure_workdir()
    return box


def _leftovers(sandbox: ExecutionSandbox) -> list:
    return list(sandbox.workdir.iterdir())


def test_prints_literal(sandbox) -> None:
    assert sandbox.run("print('hello')") == "hello"
    assert _leftovers(sandbox) == []


def test_multiline_output_is_joined(sandbox) -> None:
    assert sandbox.run("for i in range(3):\n    print(i)\n") == "0\n1\n2"


def test_script_runs_inside_sandbox_dir(sandbox) -> None:
    output = sandbox.run("import os\nprint(os.getcwd())")
    assert Path(output).resolve() == sandbox.workdir.resolve()


def test_syntax_error_is_output_not_exception(sandbox) -> None:
    output = sandbox.run("print('unclosed'")
    assert "SyntaxError" in output
    assert _leftovers(sandbox) == []


def test_runtime_error_is_output(sandbox) -> None:
    output = sandbox.run("print('before')\nraise ValueError('boom')")
    assert "ValueError: boom" in output
    assert _leftovers(sandbox) == []


def test_silent_failure_still_reports(sandbox) -> None:
    assert sandbox.run("import sys\nsys.exit(3)") == "Process exited with code 3"


def test_server_secrets_not_visible(sandbox, monkeypatch) -> None:
    monkeypatch.setenv("GENERATIVE_API_KEY", "top-secret")
    output = sandbox.run("import os\nprint(os.environ.get('GENERATIVE_API_KEY'))")
    assert output == "None"


def test_empty_code_is_bad_request(sandbox) -> None:
    with pytest.raises(BadRequest):
        sandbox.run("")
    with pytest.raises(BadRequest):
        sandbox.run(None)


def test_timeout_kills_script(sandbox_dir) -> None:
    box = ExecutionSandbox(sandbox_dir, python=sys.executable, timeout=1)
    box.ensure_workdir()
    output = box.run("import time\ntime.sleep(30)")
    assert output == "Execution timed out after 1 seconds"
    assert _leftovers(box) == []


def test_output_is_truncated(sandbox_dir) -> None:
    box = ExecutionSandbox(sandbox_dir, python=sys.executable, max_output_chars=10)
    box.ensure_workdir()
    output = box.run("print('x' * 100)")
    assert output.startswith("x" * 10)
    assert output.endswith("output truncated ...")


def test_missing_interpreter_is_sandbox_error(sandbox_dir) -> None:
    box = ExecutionSandbox(sandbox_dir, python=str(sandbox_dir / "no-such-python"))
    box.ensure_workdir()
    with pytest.raises(SandboxError):
        box.run("print(1)")
    assert _leftovers(box) == []


def test_write_failure_cleans_up(sandbox, monkeypatch) -> None:
    def half_write(self, data, encoding=None, errors=None, newline=None):
        with open(self, "w") as handle:
            handle.write(data[:3])
        raise OSError("disk full")

    monkeypatch.setattr(Path, "write_text", half_write)
    with pytest.raises(SandboxError) as excinfo:
        sandbox.run("print('hello')")
    assert "disk full" not in str(excinfo.value)
    monkeypatch.undo()
    assert _leftovers(sandbox) == []


def test_delete_failure_is_logged_not_raised(sandbox, monkeypatch, caplog) -> None:
    real_unlink = Path.unlink

    def failing_unlink(self, missing_ok=False):
        raise PermissionError("locked")

    monkeypatch.setattr(Path, "unlink", failing_unlink)
    with caplog.at_level(logging.WARNING, logger="utils.sandbox"):
        assert sandbox.run("print('still fine')") == "still fine"
    assert "Could not remove script" in caplog.text

    monkeypatch.undo()
    for leftover in _leftovers(sandbox):
        real_unlink(leftover)


def test_unique_script_names(sandbox) -> None:
    names = {sandbox.new_script_path().name for _ in range(1000)}
    assert len(names) == 1000


def test_ensure_workdir_is_idempotent(sandbox) -> None:
    assert sandbox.ensure_workdir() == sandbox.workdir
    assert sandbox.workdir.is_dir()


def test_output_limit_bounds_server_memory(sandbox_dir) -> None:
    box = ExecutionSandbox(sandbox_dir, python=sys.executable, timeout=30, max_output_chars=10)
    box.ensure_workdir()

    tracemalloc.start()
    try:
        output = box.run("import sys\nsys.stdout.write('x' * 80_000_000)")
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()

    assert output == "x" * 10 + TRUNCATION_NOTICE
    assert peak < 20 * 2**20
    assert _leftovers(box) == []


def test_runaway_stderr_is_also_capped(sandbox_dir) -> None:
    box = ExecutionSandbox(sandbox_dir, python=sys.executable, timeout=30, max_output_chars=10)
    box.ensure_workdir()
    output = box.run("import sys\nwhile True:\n    sys.stderr.write('e' * 4096)")
    assert output == "e" * 10 + TRUNCATION_NOTICE


def test_command_without_limits_runs_script_directly(sandbox) -> None:
    assert sandbox.command("script_x.py") == [sys.executable, "-u", "script_x.py"]


@posix_only
def test_command_with_limits_uses_launcher(sandbox_dir) -> None:
    box = ExecutionSandbox(sandbox_dir, python=sys.executable, cpu_seconds=5, memory_bytes=1024)
    command = box.command("script_x.py")
    assert command[:2] == [sys.executable, "-c"]
    assert command[-3:] == ["5", "1024", "script_x.py"]


@posix_only
def test_limited_script_still_prints(sandbox_dir) -> None:
    box = ExecutionSandbox(
        sandbox_dir, python=sys.executable, cpu_seconds=5, memory_bytes=1024**3,
    )
    box.ensure_workdir()
    assert box.run("print('hello')") == "hello"
    assert _leftovers(box) == []


@posix_only
def test_cpu_limit_stops_busy_loop(sandbox_dir) -> None:
    box = ExecutionSandbox(sandbox_dir, python=sys.executable, timeout=10, cpu_seconds=1)
    box.ensure_workdir()

    started = time.monotonic()
    output = box.run("while True:\n    pass")

    assert time.monotonic() - started < 8
    assert output.startswith("Process exited with code -")
    assert _leftovers(box) == []


@posix_only
def test_memory_limit_fails_large_allocation(sandbox_dir) -> None:
    box = ExecutionSandbox(
        sandbox_dir, python=sys.executable, timeout=10, memory_bytes=512 * 1024**2,
    )
    box.ensure_workdir()
    output = box.run("x = bytearray(2 * 1024**3)\nprint('allocated')")
    assert "MemoryError" in output
    assert _leftovers(box) == []


def test_max_concurrency_serializes_runs(sandbox_dir) -> None:
    box = ExecutionSandbox(sandbox_dir, python=sys.executable, timeout=10, max_concurrency=1)
    box.ensure_workdir()
    outputs = []

    def work() -> None:
        outputs.append(box.run("import time\ntime.sleep(1)\nprint('done')"))

    threads = [threading.Thread(target=work) for _ in range(2)]
    started = time.monotonic()
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert time.monotonic() - started >= 1.9
    assert outputs == ["done", "done"]


@posix_only
def test_detached_grandchild_does_not_hold_request(sandbox) -> None:
    code = (
        "import subprocess, sys\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(8)'],"
        " start_new_session=True)\n"
        "print('done')\n"
    )
    started = time.monotonic()
    output = sandbox.run(code)

    assert time.monotonic() - started < 6
    assert output == "done"
    assert _leftovers(sandbox) == []
