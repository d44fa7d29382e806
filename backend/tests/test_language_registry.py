from pathlib import Path

import pytest

from examjudge.core.exceptions import UnsupportedLanguageError
from examjudge.services.language_registry import (
    CppRuntime,
    JavaRuntime,
    default_code_templates,
    language_registry,
)


def test_four_languages_registered():
    assert set(language_registry.supported_languages()) == {"javascript", "python", "java", "cpp"}
    assert "python" in language_registry
    assert "ruby" not in language_registry


def test_unknown_language_raises():
    with pytest.raises(UnsupportedLanguageError) as exc_info:
        language_registry.get("ruby")
    assert exc_info.value.status_code == 400
    assert exc_info.value.details == {"language": "ruby"}


def test_interpreted_languages_skip_compilation():
    workdir = Path("/sandbox/run-1")
    for language in ("python", "javascript"):
        runtime = language_registry.get(language)
        assert not runtime.requires_compilation
        assert runtime.compile_command(workdir) is None
        assert runtime.run_command(workdir)[-1] == str(workdir / runtime.source_filename)


def test_java_compiles_main_class():
    runtime = JavaRuntime(language="java", source_filename="Main.java", default_template="")
    workdir = Path("/sandbox/run-2")

    assert runtime.requires_compilation
    assert runtime.compile_command(workdir) == ["javac", "-encoding", "UTF-8", "/sandbox/run-2/Main.java"]
    assert runtime.run_command(workdir) == ["java", "-XX:+UseSerialGC", "-cp", "/sandbox/run-2", "Main"]


def test_cpp_runs_compiled_binary():
    runtime = CppRuntime(language="cpp", source_filename="main.cpp", default_template="", compiler="clang++")
    workdir = Path("/sandbox/run-3")

    command = runtime.compile_command(workdir)
    assert command[0] == "clang++"
    assert command[-2:] == ["-o", "/sandbox/run-3/main"]
    assert runtime.run_command(workdir) == ["/sandbox/run-3/main"]


def test_default_templates_cover_every_language():
    templates = default_code_templates()
    assert set(templates) == set(language_registry.supported_languages())
    assert "public class Main" in templates["java"]
    assert "def solution" in templates["python"]
