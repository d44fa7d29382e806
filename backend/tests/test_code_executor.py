import os
import shutil
import signal
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from examjudge.config import settings
from examjudge.core.exceptions import UnsupportedLanguageError
from examjudge.services.code_executor import CodeExecutor, ExecutionStatus
from examjudge.services.language_registry import CppRuntime, LanguageRegistry, PythonRuntime, build_registry

PYTHON_ECHO = "import sys\nprint(sys.stdin.read().strip())\n"


def _executor(tmp_path, **kwargs):
    return CodeExecutor(temp_dir=str(tmp_path), **kwargs)


def test_python_echo_runs_ok(tmp_path):
    result = _executor(tmp_path).run(PYTHON_ECHO, "python", "hello world\n")
    assert result.status is ExecutionStatus.OK
    assert result.stdout.strip() == "hello world"
    assert result.stderr == ""
    assert result.exit_code == 0
    assert result.execution_time_ms > 0


def test_runtime_error_is_classified_from_stderr(tmp_path):
    result = _executor(tmp_path).run("raise ValueError('boom')\n", "python", "")
    assert result.status is ExecutionStatus.RUNTIME_ERROR
    assert "ValueError" in result.stderr


def test_non_zero_exit_without_stderr_is_runtime_error(tmp_path):
    result = _executor(tmp_path).run("import sys\nsys.exit(3)\n", "python", "")
    assert result.status is ExecutionStatus.RUNTIME_ERROR
    assert result.exit_code == 3


def test_timeout_terminates_child_process(tmp_path):
    code = (
        "import os, time\n"
        "print(os.getpid(), flush=True)\n"
        "while True:\n"
        "    time.sleep(0.1)\n"
    )
    result = _executor(tmp_path, timeout=1).run(code, "python", "")

    assert result.status is ExecutionStatus.TIMEOUT
    assert "Time Limit Exceeded" in result.stderr
    pid = int(result.stdout.strip().splitlines()[0])
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


def test_timeout_kills_process_ignoring_sigterm(tmp_path):
    code = (
        "import signal, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        "while True:\n"
        "    time.sleep(0.1)\n"
    )
    result = _executor(tmp_path, timeout=1).run(code, "python", "")
    assert result.status is ExecutionStatus.TIMEOUT
    assert list(tmp_path.iterdir()) == []


def test_working_directory_removed_after_each_run(tmp_path):
    executor = _executor(tmp_path)
    executor.run(PYTHON_ECHO, "python", "a")
    executor.run("raise SystemExit(1)\n", "python", "")
    assert list(tmp_path.iterdir()) == []


def test_workspaces_are_never_reused(tmp_path):
    executor = _executor(tmp_path)
    seen = set()
    for _ in range(20):
        with executor._workspace() as workdir:
            assert workdir.is_dir()
            seen.add(workdir.name)
        assert not workdir.exists()
    assert len(seen) == 20


def test_unsupported_language_raises_typed_error(tmp_path):
    with pytest.raises(UnsupportedLanguageError):
        _executor(tmp_path).run("print(1)", "ruby", "")


def test_spawn_failure_reports_error_and_cleans_up(tmp_path):
    registry = LanguageRegistry([
        PythonRuntime(
            language="python",
            source_filename="main.py",
            default_template="",
            interpreter=str(tmp_path / "missing-python"),
        )
    ])
    workspace = tmp_path / "work"
    result = CodeExecutor(registry=registry, temp_dir=str(workspace)).run(PYTHON_ECHO, "python", "")
    assert result.status is ExecutionStatus.ERROR
    assert list(workspace.iterdir()) == []


def test_concurrent_runs_do_not_interfere(tmp_path):
    executor = _executor(tmp_path, max_processes=4)
    inputs = [f"payload-{i}" for i in range(8)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda s: executor.run(PYTHON_ECHO, "python", s), inputs))

    assert [r.stdout.strip() for r in results] == inputs
    assert all(r.status is ExecutionStatus.OK for r in results)
    assert list(tmp_path.iterdir()) == []


@pytest.mark.skipif(shutil.which(settings.CPP_COMPILER) is None, reason="C++ compiler not installed")
def test_cpp_compilation_error_skips_run(tmp_path):
    result = _executor(tmp_path).run("int main( {\n", "cpp", "")
    assert result.status is ExecutionStatus.COMPILATION_ERROR
    assert result.compile_error
    assert result.stdout == ""
    assert list(tmp_path.iterdir()) == []


def test_output_is_truncated(tmp_path):
    executor = _executor(tmp_path)
    executor.max_output_chars = 100
    result = executor.run("print('x' * 1000)\n", "python", "")
    assert result.status is ExecutionStatus.OK
    assert "output truncated" in result.stdout


def test_default_registry_uses_configured_python():
    registry = build_registry(settings)
    command = registry.get("python").run_command(Path("/w"))
    assert command == [settings.PYTHON_COMMAND, str(Path("/w") / "main.py")]


def _process_running(pid):
    """True while pid exists and is not a zombie."""
    try:
        with open(f"/proc/{pid}/stat") as f:
            state = f.read().rsplit(")", 1)[1].split()[0]
    except (FileNotFoundError, ProcessLookupError):
        return False
    return state != "Z"


def _wait_gone(pid, seconds=3.0):
    deadline = time.monotonic() + seconds
    while time.monotonic() < deadline:
        if not _process_running(pid):
            return True
        time.sleep(0.05)
    return False


@pytest.mark.skipif(not os.path.isdir("/proc"), reason="needs /proc")
def test_timeout_kills_grandchildren_in_the_process_group(tmp_path):
    code = (
        "import subprocess, sys, time\n"
        "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)'])\n"
        "print(child.pid, flush=True)\n"
        "while True:\n"
        "    time.sleep(0.1)\n"
    )
    result = _executor(tmp_path, timeout=1, max_user_processes=0).run(code, "python", "")

    assert result.status is ExecutionStatus.TIMEOUT
    grandchild = int(result.stdout.strip().splitlines()[0])
    assert _wait_gone(grandchild)


@pytest.mark.skipif(not os.path.isdir("/proc"), reason="needs /proc")
def test_timeout_holds_when_a_grandchild_leaves_the_group(tmp_path):
    code = (
        "import os, sys, time\n"
        "pid = os.fork()\n"
        "if pid == 0:\n"
        "    os.setsid()\n"
        "    time.sleep(30)\n"
        "    os._exit(0)\n"
        "print(pid, flush=True)\n"
        "while True:\n"
        "    time.sleep(0.1)\n"
    )
    executor = _executor(tmp_path, timeout=1, max_user_processes=0)

    started = time.monotonic()
    result = executor.run(code, "python", "")
    elapsed = time.monotonic() - started

    escaped = int(result.stdout.strip().splitlines()[0])
    try:
        assert result.status is ExecutionStatus.TIMEOUT
        assert elapsed < 1 + 4 * executor.terminate_grace + 2
        assert list(tmp_path.iterdir()) == []
    finally:
        try:
            os.kill(escaped, signal.SIGKILL)
        except ProcessLookupError:
            pass


def test_output_flood_is_capped_and_terminated(tmp_path):
    code = (
        "import sys\n"
        "while True:\n"
        "    sys.stdout.write('x' * 100000)\n"
    )
    executor = _executor(tmp_path, timeout=20)
    executor.max_output_bytes = 200000

    started = time.monotonic()
    result = executor.run(code, "python", "")
    elapsed = time.monotonic() - started

    assert result.status is ExecutionStatus.RUNTIME_ERROR
    assert "Output Limit Exceeded" in result.stderr
    assert len(result.stdout) <= executor.max_output_chars + 100
    assert elapsed < 10
    assert list(tmp_path.iterdir()) == []


def test_large_stdin_is_delivered_in_full(tmp_path):
    payload = "7" * 300000
    code = "import sys\nprint(len(sys.stdin.read().strip()))\n"
    result = _executor(tmp_path).run(code, "python", payload)
    assert result.status is ExecutionStatus.OK
    assert result.stdout.strip() == str(len(payload))


def test_program_that_ignores_stdin_is_not_an_error(tmp_path):
    result = _executor(tmp_path).run("print('done')\n", "python", "x" * 500000)
    assert result.status is ExecutionStatus.OK
    assert result.stdout.strip() == "done"


def test_compiler_warning_with_zero_exit_is_compilation_error(tmp_path):
    compiler = tmp_path / "fake-cc"
    compiler.write_text("#!/bin/sh\necho 'warning: unused variable x' >&2\nexit 0\n")
    compiler.chmod(0o755)
    registry = LanguageRegistry([
        CppRuntime(language="cpp", source_filename="main.cpp", default_template="", compiler=str(compiler))
    ])
    workspace = tmp_path / "work"

    result = CodeExecutor(registry=registry, temp_dir=str(workspace)).run("int main() {}", "cpp", "")

    assert result.status is ExecutionStatus.COMPILATION_ERROR
    assert "unused variable" in result.compile_error
    assert result.exit_code is None
    assert list(workspace.iterdir()) == []


def test_children_get_process_count_limit(monkeypatch, tmp_path):
    resource = pytest.importorskip("resource")
    applied = {}
    monkeypatch.setattr(resource, "setrlimit", lambda which, limits: applied.__setitem__(which, limits))

    _executor(tmp_path)._resource_preexec()()
    assert applied[resource.RLIMIT_NPROC] == (settings.EXECUTION_MAX_USER_PROCESSES,) * 2
    assert applied[resource.RLIMIT_NOFILE] == (256, 256)

    applied.clear()
    _executor(tmp_path, max_user_processes=0)._resource_preexec()()
    assert resource.RLIMIT_NPROC not in applied
