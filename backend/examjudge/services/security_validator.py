"""Static security gate for submitted source code.

The check is a coarse, language-agnostic pattern filter that runs before any
process is spawned. Every pattern is applied to every submission regardless of
its language tag, so a Python import hidden in a "java" submission is still
rejected.

Known limitation: pattern matching is defeated by obfuscation (string
concatenation, encodings, reflection). It narrows the attack surface; the
timeout-bounded sandbox remains the only runtime control.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Pattern, Tuple

from examjudge.core.exceptions import ForbiddenCodeError

logger = logging.getLogger(__name__)


DEFAULT_FORBIDDEN_PATTERNS: Tuple[str, ...] = (
    # JavaScript / Node.js modules
    r"require\s*\(\s*['\"]child_process['\"]\s*\)",
    r"require\s*\(\s*['\"]fs['\"]\s*\)",
    r"require\s*\(\s*['\"]net['\"]\s*\)",
    r"require\s*\(\s*['\"]http['\"]\s*\)",
    r"require\s*\(\s*['\"]https['\"]\s*\)",
    r"require\s*\(\s*['\"]dns['\"]\s*\)",
    r"import\s+.*\s+from\s+['\"]child_process['\"]",
    r"import\s+.*\s+from\s+['\"]fs['\"]",
    # Process spawning and dynamic evaluation
    r"\bexec\s*\(",
    r"\bexecSync\s*\(",
    r"\bspawn\s*\(",
    r"\bspawnSync\s*\(",
    r"\beval\s*\(",
    r"\bFunction\s*\(",
    # Python
    r"__import__\s*\(\s*['\"]os['\"]\s*\)",
    r"__import__\s*\(\s*['\"]subprocess['\"]\s*\)",
    r"import\s+os\b",
    r"import\s+subprocess\b",
    r"from\s+os\s+import",
    r"from\s+subprocess\s+import",
    # Java
    r"System\.exit\s*\(",
    r"Runtime\.getRuntime\s*\(\s*\)",
    r"ProcessBuilder\s*\(",
    # C / C++
    r"include\s*<unistd\.h>",
    r"include\s*<sys/.*\.h>",
    r"\bfopen\s*\(",
    r"FILE\s*\*",
)

_SUSPICIOUS_LOOP = re.compile(r"(while\s*\(true\)|for\s*\(\s*;\s*;\s*\))(?![\s\S]*break)", re.IGNORECASE)


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None


class SecurityValidator:
    """Reject code matching any forbidden pattern."""

    def __init__(self, patterns: Iterable[str] = DEFAULT_FORBIDDEN_PATTERNS):
        self._patterns: Tuple[Pattern[str], ...] = tuple(re.compile(p) for p in patterns)

    @property
    def patterns(self) -> Tuple[str, ...]:
        return tuple(p.pattern for p in self._patterns)

    def validate(self, code: str, language: str) -> ValidationResult:
        """
        Scan code against the forbidden pattern list

        Args:
            code: Submitted source code
            language: Declared language (only used for advisory checks)

        Returns:
            ValidationResult with the first offending pattern when invalid
        """
        for pattern in self._patterns:
            if pattern.search(code):
                return ValidationResult(
                    valid=False,
                    reason=f"Forbidden pattern detected: {pattern.pattern}",
                )

        if language == "javascript" and _SUSPICIOUS_LOOP.search(code):
            # Allowed; the sandbox timeout bounds it.
            logger.warning("Suspicious loop pattern detected in JavaScript code")

        return ValidationResult(valid=True)

    def ensure_safe(self, code: str, language: str) -> None:
        """Raise ForbiddenCodeError when validation fails."""
        result = self.validate(code, language)
        if not result.valid:
            logger.warning("Rejected %s submission: %s", language, result.reason)
            raise ForbiddenCodeError(result.reason or "Forbidden pattern detected")


# Singleton instance
security_validator = SecurityValidator()
