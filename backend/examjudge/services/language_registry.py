"""Language runtime registry - build/run recipes per supported language"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from examjudge.config import Settings, settings
from examjudge.core.exceptions import UnsupportedLanguageError


@dataclass(frozen=True)
class LanguageRuntime:
    """Compile-then-run recipe shared by every language variant."""

    language: str
    source_filename: str
    default_template: str

    @property
    def requires_compilation(self) -> bool:
        return False

    def compile_command(self, workdir: Path) -> Optional[List[str]]:
        return None

    def run_command(self, workdir: Path) -> List[str]:
        raise NotImplementedError


@dataclass(frozen=True)
class PythonRuntime(LanguageRuntime):
    interpreter: str = "python3"

    def run_command(self, workdir: Path) -> List[str]:
        return [self.interpreter, str(workdir / self.source_filename)]


@dataclass(frozen=True)
class JavaScriptRuntime(LanguageRuntime):
    node: str = "node"

    def run_command(self, workdir: Path) -> List[str]:
        return [self.node, str(workdir / self.source_filename)]


@dataclass(frozen=True)
class JavaRuntime(LanguageRuntime):
    javac: str = "javac"
    java: str = "java"
    main_class: str = "Main"

    @property
    def requires_compilation(self) -> bool:
        return True

    def compile_command(self, workdir: Path) -> Optional[List[str]]:
        return [self.javac, "-encoding", "UTF-8", str(workdir / self.source_filename)]

    def run_command(self, workdir: Path) -> List[str]:
        return [self.java, "-XX:+UseSerialGC", "-cp", str(workdir), self.main_class]


@dataclass(frozen=True)
class CppRuntime(LanguageRuntime):
    compiler: str = "g++"
    binary_name: str = "main"

    @property
    def requires_compilation(self) -> bool:
        return True

    def compile_command(self, workdir: Path) -> Optional[List[str]]:
        return [
            self.compiler,
            "-std=c++17",
            "-O2",
            str(workdir / self.source_filename),
            "-o",
            str(workdir / self.binary_name),
        ]

    def run_command(self, workdir: Path) -> List[str]:
        return [str(workdir / self.binary_name)]


_TEMPLATES = {
    "javascript": (
        "// Write your JavaScript code here\n\n"
        "function solution(input) {\n"
        "  // Your code here\n"
        "  return input;\n"
        "}\n"
    ),
    "python": (
        "# Write your Python code here\n\n"
        "def solution(input):\n"
        "    # Your code here\n"
        "    return input\n"
    ),
    "java": (
        "// Write your Java code here\n\n"
        "public class Main {\n"
        "    public static void main(String[] args) {\n"
        "        // Your code here\n"
        "    }\n"
        "}\n"
    ),
    "cpp": (
        "// Write your C++ code here\n\n"
        "#include <iostream>\n"
        "using namespace std;\n\n"
        "int main() {\n"
        "    // Your code here\n"
        "    return 0;\n"
        "}\n"
    ),
}


class LanguageRegistry:
    """Immutable lookup of language identifier -> runtime recipe."""

    def __init__(self, runtimes: Iterable[LanguageRuntime]):
        table: Dict[str, LanguageRuntime] = {}
        for runtime in runtimes:
            table[runtime.language] = runtime
        self._runtimes: Mapping[str, LanguageRuntime] = MappingProxyType(table)

    def get(self, language: str) -> LanguageRuntime:
        """
        Resolve the runtime for a language

        Raises:
            UnsupportedLanguageError: If no runtime is registered for it
        """
        runtime = self._runtimes.get(language)
        if runtime is None:
            raise UnsupportedLanguageError(language)
        return runtime

    def supported_languages(self) -> List[str]:
        return list(self._runtimes)

    def __contains__(self, language: object) -> bool:
        return language in self._runtimes


def build_registry(config: Settings) -> LanguageRegistry:
    """Build the registry for the four supported languages from settings."""
    return LanguageRegistry([
        JavaScriptRuntime(
            language="javascript",
            source_filename="main.js",
            default_template=_TEMPLATES["javascript"],
            node=config.NODE_COMMAND,
        ),
        PythonRuntime(
            language="python",
            source_filename="main.py",
            default_template=_TEMPLATES["python"],
            interpreter=config.PYTHON_COMMAND,
        ),
        JavaRuntime(
            language="java",
            source_filename="Main.java",
            default_template=_TEMPLATES["java"],
            javac=config.JAVAC_COMMAND,
            java=config.JAVA_COMMAND,
        ),
        CppRuntime(
            language="cpp",
            source_filename="main.cpp",
            default_template=_TEMPLATES["cpp"],
            compiler=config.CPP_COMPILER,
        ),
    ])


def default_code_templates() -> Dict[str, str]:
    """Starter code per language, used as the question default."""
    return {
        language: language_registry.get(language).default_template
        for language in language_registry.supported_languages()
    }


# Singleton instance
language_registry = build_registry(settings)
