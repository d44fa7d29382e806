"""Code execution sandbox - disposable working directory and timeout-bounded child process"""

import itertools
import logging
import os
import secrets
import selectors
import shutil
import signal
import subprocess
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from prometheus_client import Counter, Histogram

from examjudge.config import settings
from examjudge.core.exceptions import UnsupportedLanguageError
from examjudge.services.language_registry import LanguageRegistry, LanguageRuntime, language_registry

logger = logging.getLogger(__name__)

EXECUTION_COUNT = Counter(
    "examjudge_code_executions_total",
    "Sandbox executions by language and terminal status",
    ["language", "status"],
)
EXECUTION_LATENCY = Histogram(
    "examjudge_code_execution_duration_seconds",
    "Wall-clock time of a sandbox execution including compilation",
    ["language"],
)

# Shared by every executor in the process so directory names never repeat.
_workdir_counter = itertools.count(1)
_workdir_counter_lock = threading.Lock()

_PIPE_CHUNK = 64 * 1024


class ExecutionStatus(str, Enum):
    OK = "ok"
    COMPILATION_ERROR = "Compilation Error"
    RUNTIME_ERROR = "Runtime Error"
    TIMEOUT = "Timeout"
    ERROR = "Error"


@dataclass
class ExecutionResult:
    """Outcome of one sandboxed run. Never persisted."""

    status: ExecutionStatus
    stdout: str = ""
    stderr: str = ""
    compile_error: str = ""
    exit_code: Optional[int] = None
    execution_time_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is ExecutionStatus.OK


@dataclass
class _ProcessOutcome:
    stdout: str
    stderr: str
    returncode: Optional[int]
    timed_out: bool
    output_exceeded: bool
    elapsed_ms: float


class CodeExecutor:
    """Process-level sandbox: one fresh directory and one child per run (POSIX)"""

    def __init__(
        self,
        registry: Optional[LanguageRegistry] = None,
        timeout: Optional[float] = None,
        compile_timeout: Optional[float] = None,
        temp_dir: Optional[str] = None,
        max_processes: Optional[int] = None,
        max_user_processes: Optional[int] = None,
    ):
        self.registry = registry or language_registry
        self.timeout = timeout if timeout is not None else settings.CODE_EXECUTION_TIMEOUT
        self.compile_timeout = compile_timeout if compile_timeout is not None else settings.COMPILE_TIMEOUT
        self.terminate_grace = settings.TERMINATE_GRACE_SECONDS
        self.max_output_chars = settings.MAX_OUTPUT_CHARS
        self.max_output_bytes = settings.MAX_OUTPUT_BYTES
        self.max_user_processes = (
            max_user_processes if max_user_processes is not None else settings.EXECUTION_MAX_USER_PROCESSES
        )
        self.temp_dir = Path(temp_dir or settings.get_temp_dir())
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        # Limit concurrent children to prevent resource exhaustion
        self._semaphore = threading.Semaphore(max(1, max_processes or settings.EXECUTION_MAX_PROCESSES))

    @staticmethod
    def _sanitize_env() -> Dict[str, str]:
        """
        Return a constrained environment for child processes.
        """
        allowed_keys = {
            "PATH",
            "HOME",
            "LANG",
            "LC_ALL",
            "TMPDIR",
        }
        sanitized = {}
        for key in allowed_keys:
            value = os.environ.get(key)
            if value:
                sanitized[key] = value
        return sanitized

    def _resource_preexec(self):
        """
        Apply per-process limits in the child before exec.

        Memory is not limited; questions carry a memory limit
        for display only.
        """
        try:
            import resource
        except ImportError:
            return None

        max_user_processes = self.max_user_processes

        def _set_limits():
            # Prevent fork bombs.
            if max_user_processes > 0:
                try:
                    resource.setrlimit(resource.RLIMIT_NPROC, (max_user_processes, max_user_processes))
                except (ValueError, OSError):
                    pass

            # File size and open file handles.
            try:
                resource.setrlimit(resource.RLIMIT_FSIZE, (10 * 1024 * 1024, 10 * 1024 * 1024))
                resource.setrlimit(resource.RLIMIT_NOFILE, (256, 256))
            except (ValueError, OSError):
                pass

        return _set_limits

    @contextmanager
    def _workspace(self) -> Iterator[Path]:
        """Allocate a never-reused working directory and always remove it."""
        with _workdir_counter_lock:
            sequence = next(_workdir_counter)
        workdir = self.temp_dir / f"run-{os.getpid()}-{sequence}-{secrets.token_hex(8)}"
        workdir.mkdir(mode=0o700)
        try:
            yield workdir
        finally:
            try:
                shutil.rmtree(workdir)
            except OSError as e:
                logger.error(f"Failed to remove sandbox directory {workdir}: {e}")

    def run(self, code: str, language: str, stdin: str = "") -> ExecutionResult:
        """
        Compile (when needed) and run code once

        Args:
            code: Source code
            language: Registered language identifier
            stdin: Data piped to the program's standard input

        Returns:
            ExecutionResult; infrastructure failures are reported with status Error

        Raises:
            UnsupportedLanguageError: If the language has no runtime
        """
        runtime = self.registry.get(language)
        started = time.monotonic()
        try:
            with self._workspace() as workdir:
                result = self._run_in_workspace(runtime, workdir, code, stdin)
        except UnsupportedLanguageError:
            raise
        except Exception as e:
            logger.exception(f"Sandbox failure for {language} execution: {e}")
            result = ExecutionResult(status=ExecutionStatus.ERROR, stderr=str(e))

        EXECUTION_COUNT.labels(language, result.status.value).inc()
        EXECUTION_LATENCY.labels(language).observe(time.monotonic() - started)
        return result

    def _run_in_workspace(
        self, runtime: LanguageRuntime, workdir: Path, code: str, stdin: str
    ) -> ExecutionResult:
        source_file = workdir / runtime.source_filename
        source_file.write_text(code, encoding="utf-8")

        if runtime.requires_compilation:
            compile_error = self._compile_if_needed(runtime, workdir)
            if compile_error is not None:
                return ExecutionResult(
                    status=ExecutionStatus.COMPILATION_ERROR,
                    stderr=compile_error,
                    compile_error=compile_error,
                )

        outcome = self._spawn(runtime.run_command(workdir), workdir, stdin or "", self.timeout)

        if outcome.output_exceeded:
            logger.info(f"{runtime.language} execution exceeded {self.max_output_bytes} output bytes")
            marker = (
                f"Output Limit Exceeded: output exceeded {self.max_output_bytes} bytes "
                f"and the program was terminated"
            )
            stderr = f"{outcome.stderr}\n{marker}" if outcome.stderr else marker
            status = ExecutionStatus.RUNTIME_ERROR
        elif outcome.timed_out:
            logger.info(f"{runtime.language} execution timed out after {self.timeout}s")
            marker = f"Time Limit Exceeded: execution exceeded {self.timeout:g}s and was terminated"
            stderr = f"{outcome.stderr}\n{marker}" if outcome.stderr else marker
            status = ExecutionStatus.TIMEOUT
        else:
            stderr = outcome.stderr
            if stderr.strip() or outcome.returncode != 0:
                status = ExecutionStatus.RUNTIME_ERROR
            else:
                status = ExecutionStatus.OK

        return ExecutionResult(
            status=status,
            stdout=outcome.stdout,
            stderr=stderr,
            exit_code=outcome.returncode,
            execution_time_ms=outcome.elapsed_ms,
        )

    def _compile_if_needed(self, runtime: LanguageRuntime, workdir: Path) -> Optional[str]:
        """Compile code if necessary; return compiler output on failure."""
        command = runtime.compile_command(workdir)
        if command is None:
            return None

        outcome = self._spawn(command, workdir, None, self.compile_timeout)
        if outcome.timed_out:
            return f"Compilation timed out after {self.compile_timeout:g}s"
        if outcome.output_exceeded:
            return f"Compiler output exceeded {self.max_output_bytes} bytes"

        # Any compiler diagnostics on stderr count as a failed build.
        if outcome.stderr.strip() or outcome.returncode != 0:
            logger.info(f"Compilation error ({runtime.language}): {outcome.stderr[:500]}")
            return (outcome.stderr or outcome.stdout or "Compilation failed").strip()
        return None

    def _spawn(
        self,
        command: List[str],
        workdir: Path,
        stdin_data: Optional[str],
        timeout: float,
    ) -> _ProcessOutcome:
        """Run a command in its own process group under a wall-clock timeout."""
        with self._semaphore:
            started = time.monotonic()
            process = subprocess.Popen(
                command,
                cwd=str(workdir),
                stdin=subprocess.PIPE if stdin_data is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
                env=self._sanitize_env(),
                start_new_session=True,
                preexec_fn=self._resource_preexec(),
            )
            try:
                stdout, stderr, timed_out, exceeded = self._communicate(
                    process, stdin_data, started + timeout
                )
            except BaseException:
                if process.returncode is None:
                    self._terminate_group(process)
                raise
            finally:
                for stream in (process.stdin, process.stdout, process.stderr):
                    if stream is not None and not stream.closed:
                        stream.close()
            elapsed_ms = (time.monotonic() - started) * 1000

        return _ProcessOutcome(
            stdout=self._truncate(stdout.decode("utf-8", errors="replace")),
            stderr=self._truncate(stderr.decode("utf-8", errors="replace")),
            returncode=process.returncode,
            timed_out=timed_out,
            output_exceeded=exceeded,
            elapsed_ms=round(elapsed_ms, 3),
        )

    def _communicate(
        self,
        process: subprocess.Popen,
        stdin_data: Optional[str],
        deadline: float,
    ) -> Tuple[bytes, bytes, bool, bool]:
        """
        Pump the child's pipes until they close or the deadline passes

        Each output stream keeps at most ``max_output_bytes``; overflowing one
        kills the process group. After a kill the pipes are drained for at
        most ``terminate_grace`` seconds, because a process that left the group
        can hold them open indefinitely.

        Returns:
            (stdout bytes, stderr bytes, timed_out, output_exceeded)
        """
        captured = {process.stdout: bytearray(), process.stderr: bytearray()}
        pending = memoryview((stdin_data or "").encode("utf-8"))
        timed_out = exceeded = False
        drain_until: Optional[float] = None

        with selectors.DefaultSelector() as selector:
            for stream in captured:
                selector.register(stream, selectors.EVENT_READ)
            if process.stdin is not None:
                if pending:
                    os.set_blocking(process.stdin.fileno(), False)
                    selector.register(process.stdin, selectors.EVENT_WRITE)
                else:
                    process.stdin.close()

            while selector.get_map():
                now = time.monotonic()
                if drain_until is None and (exceeded or now >= deadline):
                    timed_out = not exceeded
                    self._terminate_group(process)
                    now = time.monotonic()
                    drain_until = now + self.terminate_grace
                if drain_until is not None and now >= drain_until:
                    logger.warning(f"Abandoning pipes still held open after pid {process.pid} was terminated")
                    break

                limit = drain_until if drain_until is not None else deadline
                for key, _ in selector.select(timeout=limit - now):
                    stream = key.fileobj
                    if stream is process.stdin:
                        try:
                            written = os.write(key.fd, pending[:_PIPE_CHUNK])
                        except BlockingIOError:
                            continue
                        except BrokenPipeError:
                            written = len(pending)
                        pending = pending[written:]
                        if not pending:
                            selector.unregister(stream)
                            stream.close()
                        continue

                    chunk = os.read(key.fd, _PIPE_CHUNK)
                    if not chunk:
                        selector.unregister(stream)
                        continue
                    buffer = captured[stream]
                    room = self.max_output_bytes - len(buffer)
                    if len(chunk) > room:
                        if room > 0:
                            buffer.extend(chunk[:room])
                        exceeded = True
                    else:
                        buffer.extend(chunk)

        if drain_until is None:
            if exceeded:
                self._terminate_group(process)
            else:
                # Pipes are closed but the program may still be running.
                try:
                    process.wait(timeout=max(0.0, deadline - time.monotonic()))
                except subprocess.TimeoutExpired:
                    timed_out = True
                    self._terminate_group(process)

        return bytes(captured[process.stdout]), bytes(captured[process.stderr]), timed_out, exceeded

    def _terminate_group(self, process: subprocess.Popen) -> None:
        """SIGTERM the child's process group, then SIGKILL whatever is left."""
        try:
            os.killpg(process.pid, signal.SIGTERM)
        except ProcessLookupError:
            pass
        try:
            process.wait(timeout=self.terminate_grace)
        except subprocess.TimeoutExpired:
            pass
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        process.wait()

    def _truncate(self, text: str) -> str:
        if len(text) <= self.max_output_chars:
            return text
        omitted = len(text) - self.max_output_chars
        return text[:self.max_output_chars] + f"\n... [output truncated, {omitted} characters omitted]"


# Singleton instance
code_executor = CodeExecutor()
