import pytest

from examjudge.core.exceptions import ForbiddenCodeError
from examjudge.services.security_validator import SecurityValidator, security_validator


@pytest.mark.parametrize(
    "language,code",
    [
        ("javascript", "const cp = require('child_process');"),
        ("javascript", "const fs = require(\"fs\");"),
        ("javascript", "import { readFileSync } from 'fs';"),
        ("javascript", "eval('1 + 1');"),
        ("javascript", "new Function('return 1')();"),
        ("python", "import os\nprint(os.listdir('.'))"),
        ("python", "from subprocess import run"),
        ("python", "__import__('os').system('ls')"),
        ("java", "Runtime.getRuntime().exec(\"ls\");"),
        ("java", "System.exit(0);"),
        ("java", "new ProcessBuilder(\"ls\").start();"),
        ("cpp", "#include <unistd.h>\nint main() { return 0; }"),
        ("cpp", "#include <sys/socket.h>"),
        ("cpp", "FILE *f = fopen(\"x\", \"r\");"),
    ],
)
def test_forbidden_patterns_are_rejected(language, code):
    result = security_validator.validate(code, language)
    assert not result.valid
    assert result.reason.startswith("Forbidden pattern detected: ")


def test_patterns_apply_regardless_of_declared_language():
    code = "import subprocess\npublic class Main {}"
    assert not security_validator.validate(code, "java").valid


@pytest.mark.parametrize(
    "language,code",
    [
        ("python", "import sys\nprint(sys.stdin.read())\n"),
        ("javascript", "function myFunction(x) { return x * 2; }\nconsole.log(myFunction(2));"),
        ("java", "public class Main { public static void main(String[] a) { System.out.println(1); } }"),
        ("cpp", "#include <iostream>\nint main() { std::cout << 1; }"),
    ],
)
def test_clean_code_passes(language, code):
    assert security_validator.validate(code, language).valid


def test_infinite_loop_is_only_advisory(caplog):
    result = security_validator.validate("while(true) { x++; }", "javascript")
    assert result.valid
    assert "Suspicious loop" in caplog.text


def test_ensure_safe_raises_forbidden_code_error():
    with pytest.raises(ForbiddenCodeError) as exc_info:
        security_validator.ensure_safe("import os", "python")
    assert exc_info.value.status_code == 403
    assert "import" in exc_info.value.details["reason"]


def test_custom_pattern_list():
    validator = SecurityValidator(patterns=[r"goto\s"])
    assert not validator.validate("goto end;", "cpp").valid
    assert validator.validate("import os", "python").valid
    assert validator.patterns == (r"goto\s",)
