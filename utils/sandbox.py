"""
Runs untrusted snippets as a disposable interpreter process.

Every run writes the snippet to its own uniquely named file inside the
sandbox directory, runs `<python> -u <file>` there and removes the file on
every exit path. Script errors are returned as output text, not raised.
"""
from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import uuid
from pathlib import Path
from typing import Callable, Optional

from utils.exceptions import BadRequest, SandboxError

logger = logging.getLogger(__name__)

SCRIPT_PREFIX = "script_"
SCRIPT_SUFFIX = ".py"
TRUNCATION_NOTICE = "\n... output truncated ..."
READ_CHUNK = 64 * 1024
# upper bound for waits that follow a kill
REAP_SECONDS = 2.0

# Applies the rlimits inside the child and then replaces itself with the real
# interpreter, so the server never runs code between fork and exec.
LIMITS_LAUNCHER = (
    "import os, resource, sys\n"
    "cpu, mem, script = int(sys.argv[1]), int(sys.argv[2]), sys.argv[3]\n"
    "if cpu > 0:\n"
    "    resource.setrlimit(resource.RLIMIT_CPU, (cpu, cpu))\n"
    "if mem > 0:\n"
    "    resource.setrlimit(resource.RLIMIT_AS, (mem, mem))\n"
    "os.execv(sys.executable, [sys.executable, '-u', script])\n"
)


class _PipeCollector(threading.Thread):
    """
    Drains one child pipe, keeping at most `limit` bytes (0 = no limit).
    Calls `on_overflow` once when the child writes past the limit and stops
    reading.
    """

    def __init__(self, stream, limit: int, on_overflow: Callable[[], None]):
        super().__init__(daemon=True)
        self._stream = stream
        self._limit = limit
        self._on_overflow = on_overflow
        self._chunks: list[bytes] = []
        self._kept = 0
        self.overflowed = False

    def run(self):
        try:
            while True:
                chunk = self._stream.read1(READ_CHUNK)
                if not chunk:
                    return
                if self._limit:
                    room = self._limit - self._kept
                    if len(chunk) > room:
                        self._keep(chunk[:room])
                        self.overflowed = True
                        self._on_overflow()
                        return
                self._keep(chunk)
        except (OSError, ValueError):
            # pipe closed underneath us after a kill
            return
        finally:
            try:
                self._stream.close()
            except OSError:
                pass

    def _keep(self, chunk: bytes) -> None:
        if chunk:
            self._chunks.append(chunk)
            self._kept += len(chunk)

    def text(self) -> str:
        return b"".join(self._chunks).decode("utf-8", errors="replace")


class ExecutionSandbox:
    def __init__(
        self,
        workdir: str | os.PathLike,
        python: str = "python3",
        timeout: Optional[float] = 10.0,
        cpu_seconds: int = 0,
        memory_bytes: int = 0,
        max_output_chars: int = 0,
        max_concurrency: int = 0,
    ):
        self.workdir = Path(workdir)
        self.python = python
        self.timeout = timeout or None
        self.cpu_seconds = cpu_seconds
        self.memory_bytes = memory_bytes
        self.max_output_chars = max_output_chars
        self._slots = threading.BoundedSemaphore(max_concurrency) if max_concurrency > 0 else None

    def ensure_workdir(self) -> Path:
        """Create the sandbox directory; an existing one is reused."""
        try:
            os.makedirs(self.workdir)
        except FileExistsError:
            if not self.workdir.is_dir():
                raise
        return self.workdir

    def new_script_path(self) -> Path:
        return self.workdir / f"{SCRIPT_PREFIX}{uuid.uuid4().hex}{SCRIPT_SUFFIX}"

    def run(self, code: Optional[str]) -> str:
        """Run `code` and return its stdout, or its error text on failure."""
        if not code:
            raise BadRequest("Code not found")

        if self._slots is not None:
            with self._slots:
                return self._run(code)
        return self._run(code)

    def _run(self, code: str) -> str:
        path = self.new_script_path()
        try:
            try:
                path.write_text(code, encoding="utf-8")
            except OSError as exc:
                logger.exception("Could not write script %s", path.name)
                raise SandboxError() from exc
            return self._truncate(self._spawn(path))
        finally:
            self._discard(path)

    def command(self, script_name: str) -> list[str]:
        if self._has_limits():
            return [
                self.python, "-c", LIMITS_LAUNCHER,
                str(self.cpu_seconds), str(self.memory_bytes), script_name,
            ]
        return [self.python, "-u", script_name]

    def _spawn(self, path: Path) -> str:
        try:
            proc = subprocess.Popen(
                self.command(path.name),
                cwd=str(self.workdir),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self._child_env(),
                start_new_session=os.name == "posix",
            )
        except OSError as exc:
            logger.exception("Could not start interpreter %s", self.python)
            raise SandboxError() from exc

        # UTF-8 needs at most 4 bytes per character
        limit = self.max_output_chars * 4
        stdout = _PipeCollector(proc.stdout, limit, lambda: self._kill(proc))
        stderr = _PipeCollector(proc.stderr, limit, lambda: self._kill(proc))
        stdout.start()
        stderr.start()

        timed_out = False
        try:
            proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            self._kill(proc)
            try:
                proc.wait(timeout=REAP_SECONDS)
            except subprocess.TimeoutExpired:
                logger.warning("Script %s did not exit after SIGKILL", path.name)

        for collector in (stdout, stderr):
            collector.join(REAP_SECONDS)
            if collector.is_alive():
                # a detached grandchild still holds the pipe; it is bounded by the limit
                logger.warning("Output pipe of %s still open, not waiting for it", path.name)

        if timed_out:
            logger.warning("Script %s killed after %ss", path.name, self.timeout)
            return f"Execution timed out after {self.timeout:g} seconds"
        if stdout.overflowed or stderr.overflowed:
            logger.info("Script %s killed for exceeding the output limit", path.name)
            text = stdout.text() if stdout.overflowed else stderr.text()
            return text[: self.max_output_chars] + TRUNCATION_NOTICE
        if proc.returncode != 0:
            logger.info("Script %s exited with code %s", path.name, proc.returncode)
            return stderr.text().strip() or f"Process exited with code {proc.returncode}"
        return "\n".join(stdout.text().splitlines())

    def _discard(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove script %s", path, exc_info=True)

    def _truncate(self, output: str) -> str:
        if self.max_output_chars and len(output) > self.max_output_chars:
            return output[: self.max_output_chars] + TRUNCATION_NOTICE
        return output

    def _has_limits(self) -> bool:
        return os.name == "posix" and (self.cpu_seconds > 0 or self.memory_bytes > 0)

    @staticmethod
    def _child_env() -> dict:
        # server secrets stay out of the child
        env = {
            "PATH": os.environ.get("PATH", os.defpath),
            "PYTHONUNBUFFERED": "1",
            "PYTHONIOENCODING": "utf-8",
            "PYTHONDONTWRITEBYTECODE": "1",
        }
        for key in ("SYSTEMROOT", "LANG", "LC_ALL"):
            if key in os.environ:
                env[key] = os.environ[key]
        return env

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        if os.name == "posix":
            try:
                os.killpg(proc.pid, signal.SIGKILL)
                return
            except ProcessLookupError:
                return
            except OSError:
                logger.warning("killpg failed for pid %s", proc.pid, exc_info=True)
        try:
            proc.kill()
        except OSError:
            pass
