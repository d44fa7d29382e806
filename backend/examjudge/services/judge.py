"""Judge - runs code against a question's test cases and derives verdicts"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from examjudge.core.exceptions import CodeExecutionError, NoTestCasesError
from examjudge.models.question import CodingQuestion, TestCase
from examjudge.models.submission import SubmissionStatus
from examjudge.services.code_executor import CodeExecutor, ExecutionStatus, code_executor

logger = logging.getLogger(__name__)

HIDDEN_PLACEHOLDER = "Hidden"

# Most severe first; decides the overall status of a failed submission.
_FAILURE_PRECEDENCE = (
    SubmissionStatus.COMPILATION_ERROR,
    SubmissionStatus.TIME_LIMIT_EXCEEDED,
    SubmissionStatus.RUNTIME_ERROR,
    SubmissionStatus.WRONG_ANSWER,
)

_EXECUTION_TO_VERDICT = {
    ExecutionStatus.COMPILATION_ERROR: SubmissionStatus.COMPILATION_ERROR,
    ExecutionStatus.RUNTIME_ERROR: SubmissionStatus.RUNTIME_ERROR,
    ExecutionStatus.TIMEOUT: SubmissionStatus.TIME_LIMIT_EXCEEDED,
}


class JudgeMode(str, Enum):
    RUN = "run"
    SUBMIT = "submit"


@dataclass
class CaseVerdict:
    """Full verdict for one test case; `to_public` applies hidden-case redaction."""

    test_case_id: Optional[int]
    position: int
    is_hidden: bool
    input: str
    expected_output: str
    actual_output: str
    stderr: str
    verdict: SubmissionStatus
    execution_time_ms: float

    @property
    def passed(self) -> bool:
        return self.verdict is SubmissionStatus.ACCEPTED

    @property
    def status(self) -> SubmissionStatus:
        """Status as shown to the submitter."""
        if self.is_hidden:
            return SubmissionStatus.ACCEPTED if self.passed else SubmissionStatus.FAILED
        return self.verdict

    def to_public(self) -> Dict[str, Any]:
        if self.is_hidden:
            return {
                "test_case_id": self.test_case_id,
                "is_hidden": True,
                "input": None,
                "expected_output": HIDDEN_PLACEHOLDER,
                "actual_output": None,
                "stderr": None,
                "status": self.status.value,
                "execution_time_ms": self.execution_time_ms,
            }
        return {
            "test_case_id": self.test_case_id,
            "is_hidden": False,
            "input": self.input,
            "expected_output": self.expected_output,
            "actual_output": self.actual_output,
            "stderr": self.stderr,
            "status": self.status.value,
            "execution_time_ms": self.execution_time_ms,
        }


@dataclass
class JudgeOutcome:
    results: List[CaseVerdict] = field(default_factory=list)
    status: SubmissionStatus = SubmissionStatus.PENDING
    score: int = 0
    execution_time_ms: float = 0.0

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def total(self) -> int:
        return len(self.results)


def outputs_match(actual: str, expected: str) -> bool:
    """Exact comparison after trimming surrounding whitespace only."""
    return (actual or "").strip() == (expected or "").strip()


class Judge:
    """Drive the sandbox across test cases; all-or-nothing scoring."""

    def __init__(self, executor: Optional[CodeExecutor] = None):
        self.executor = executor or code_executor

    @staticmethod
    def select_test_cases(question: CodingQuestion, mode: JudgeMode) -> List[TestCase]:
        """
        Pick the cases for a mode

        Run uses the first visible case as a smoke test; submit uses all.

        Raises:
            NoTestCasesError: If the mode has nothing to execute
        """
        if mode is JudgeMode.RUN:
            cases = question.sample_test_cases[:1]
            if not cases:
                raise NoTestCasesError("No sample test cases available")
            return cases

        cases = list(question.test_cases)
        if not cases:
            raise NoTestCasesError("No test cases available")
        return cases

    def evaluate(
        self,
        question: CodingQuestion,
        code: str,
        language: str,
        test_cases: Sequence[TestCase],
    ) -> JudgeOutcome:
        """
        Execute code against test cases and grade it

        Args:
            question: Question providing the points on full pass
            code: Source code (already validated)
            language: Language identifier
            test_cases: Ordered cases to run

        Returns:
            JudgeOutcome with per-case verdicts, overall status and score

        Raises:
            CodeExecutionError: If the sandbox reports an infrastructure failure
        """
        outcome = JudgeOutcome()
        compile_error: Optional[str] = None

        for position, test_case in enumerate(test_cases):
            if compile_error is not None:
                # Same source, same build failure.
                outcome.results.append(self._verdict(
                    test_case, position, "", compile_error, SubmissionStatus.COMPILATION_ERROR, 0.0
                ))
                continue

            result = self.executor.run(code, language, test_case.input or "")

            if result.status is ExecutionStatus.ERROR:
                logger.error(f"Sandbox infrastructure error on test case {test_case.id}: {result.stderr}")
                raise CodeExecutionError("Code execution failed")

            if result.status is ExecutionStatus.OK:
                verdict = (
                    SubmissionStatus.ACCEPTED
                    if outputs_match(result.stdout, test_case.expected_output)
                    else SubmissionStatus.WRONG_ANSWER
                )
            else:
                verdict = _EXECUTION_TO_VERDICT[result.status]
                if verdict is SubmissionStatus.COMPILATION_ERROR:
                    compile_error = result.compile_error or result.stderr

            outcome.results.append(self._verdict(
                test_case, position, result.stdout, result.stderr, verdict, result.execution_time_ms
            ))

        outcome.execution_time_ms = round(sum(r.execution_time_ms for r in outcome.results), 3)
        outcome.status = self.overall_status(outcome.results)
        outcome.score = question.points if outcome.status is SubmissionStatus.ACCEPTED else 0
        return outcome

    @staticmethod
    def overall_status(results: Sequence[CaseVerdict]) -> SubmissionStatus:
        """
        Accepted iff every case passed; otherwise the most severe failure

        A hidden case that fails ranks as Wrong Answer whatever its own verdict,
        so the overall status never says how a hidden case failed. Compilation
        errors are not case specific and rank as themselves.
        """
        if results and all(r.passed for r in results):
            return SubmissionStatus.ACCEPTED
        verdicts = {
            r.verdict
            if not r.is_hidden or r.verdict is SubmissionStatus.COMPILATION_ERROR
            else SubmissionStatus.WRONG_ANSWER
            for r in results
            if not r.passed
        }
        for status in _FAILURE_PRECEDENCE:
            if status in verdicts:
                return status
        return SubmissionStatus.WRONG_ANSWER

    @staticmethod
    def _verdict(
        test_case: TestCase,
        position: int,
        stdout: str,
        stderr: str,
        verdict: SubmissionStatus,
        execution_time_ms: float,
    ) -> CaseVerdict:
        return CaseVerdict(
            test_case_id=test_case.id,
            position=position,
            is_hidden=bool(test_case.is_hidden),
            input=test_case.input or "",
            expected_output=test_case.expected_output or "",
            actual_output=stdout,
            stderr=stderr,
            verdict=verdict,
            execution_time_ms=execution_time_ms,
        )


# Singleton instance
judge = Judge()
