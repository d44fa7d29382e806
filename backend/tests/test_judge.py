import pytest

from examjudge.core.exceptions import CodeExecutionError, NoTestCasesError
from examjudge.models.question import CodingQuestion, TestCase
from examjudge.models.submission import SubmissionStatus
from examjudge.services.code_executor import ExecutionResult, ExecutionStatus
from examjudge.services.judge import HIDDEN_PLACEHOLDER, Judge, JudgeMode, outputs_match


class FakeExecutor:
    """Answers each stdin with a scripted ExecutionResult."""

    def __init__(self, script):
        self.script = script
        self.calls = []

    def run(self, code, language, stdin=""):
        self.calls.append(stdin)
        result = self.script(stdin)
        if isinstance(result, str):
            return ExecutionResult(status=ExecutionStatus.OK, stdout=result, execution_time_ms=5.0)
        return result


def _question(cases, points=10):
    return CodingQuestion(
        title="Echo",
        points=points,
        test_cases=[
            TestCase(position=i, input=inp, expected_output=out, is_hidden=hidden)
            for i, (inp, out, hidden) in enumerate(cases)
        ],
    )


def test_outputs_match_trims_surrounding_whitespace_only():
    assert outputs_match("42\n", "42")
    assert outputs_match("  a b  ", "a b")
    assert not outputs_match("a  b", "a b")
    assert not outputs_match("ABC", "abc")


def test_run_mode_uses_first_visible_case():
    question = _question([("h1", "h1", True), ("s1", "s1", False), ("s2", "s2", False)])
    cases = Judge.select_test_cases(question, JudgeMode.RUN)
    assert [c.input for c in cases] == ["s1"]


def test_run_mode_without_visible_cases_raises():
    question = _question([("h1", "h1", True)])
    with pytest.raises(NoTestCasesError):
        Judge.select_test_cases(question, JudgeMode.RUN)


def test_submit_mode_without_cases_raises():
    with pytest.raises(NoTestCasesError):
        Judge.select_test_cases(_question([]), JudgeMode.SUBMIT)


def test_all_cases_pass_awards_full_points():
    question = _question([("1", "1", False), ("2", "2", True)], points=25)
    executor = FakeExecutor(lambda stdin: stdin + "\n")
    outcome = Judge(executor).evaluate(question, "code", "python", question.test_cases)

    assert outcome.status is SubmissionStatus.ACCEPTED
    assert outcome.score == 25
    assert (outcome.passed, outcome.total) == (2, 2)
    assert outcome.execution_time_ms == 10.0


def test_partial_pass_scores_zero():
    question = _question([("1", "1", False), ("2", "3", False)])
    outcome = Judge(FakeExecutor(lambda stdin: stdin)).evaluate(question, "c", "python", question.test_cases)

    assert outcome.status is SubmissionStatus.WRONG_ANSWER
    assert outcome.score == 0
    assert outcome.passed == 1


def test_hidden_case_result_is_redacted():
    question = _question([("secret input", "expected", True)])
    outcome = Judge(FakeExecutor(lambda stdin: "wrong")).evaluate(question, "c", "python", question.test_cases)

    verdict = outcome.results[0]
    assert verdict.verdict is SubmissionStatus.WRONG_ANSWER
    assert verdict.status is SubmissionStatus.FAILED

    public = verdict.to_public()
    assert public["status"] == "Failed"
    assert public["expected_output"] == HIDDEN_PLACEHOLDER
    assert public["input"] is None
    assert public["actual_output"] is None
    assert "secret input" not in str(public)


def test_visible_case_result_is_complete():
    question = _question([("in", "out", False)])
    outcome = Judge(FakeExecutor(lambda stdin: "nope")).evaluate(question, "c", "python", question.test_cases)

    public = outcome.results[0].to_public()
    assert public["status"] == "Wrong Answer"
    assert public["input"] == "in"
    assert public["expected_output"] == "out"
    assert public["actual_output"] == "nope"


def test_overall_status_follows_failure_precedence():
    def script(stdin):
        if stdin == "slow":
            return ExecutionResult(status=ExecutionStatus.TIMEOUT, stderr="Time Limit Exceeded")
        if stdin == "crash":
            return ExecutionResult(status=ExecutionStatus.RUNTIME_ERROR, stderr="boom", exit_code=1)
        return "wrong"

    question = _question([("a", "b", False), ("crash", "x", False), ("slow", "x", False)])
    outcome = Judge(FakeExecutor(script)).evaluate(question, "c", "python", question.test_cases)

    assert [r.verdict for r in outcome.results] == [
        SubmissionStatus.WRONG_ANSWER,
        SubmissionStatus.RUNTIME_ERROR,
        SubmissionStatus.TIME_LIMIT_EXCEEDED,
    ]
    assert outcome.status is SubmissionStatus.TIME_LIMIT_EXCEEDED


def _slow_on(hidden_input):
    def script(stdin):
        if stdin == hidden_input:
            return ExecutionResult(status=ExecutionStatus.TIMEOUT, stderr="Time Limit Exceeded")
        return stdin
    return script


def test_hidden_failure_does_not_reveal_its_kind_in_overall_status():
    question = _question([("a", "a", False), ("slow", "x", True)])
    outcome = Judge(FakeExecutor(_slow_on("slow"))).evaluate(question, "c", "python", question.test_cases)

    assert outcome.results[1].verdict is SubmissionStatus.TIME_LIMIT_EXCEEDED
    assert outcome.results[1].status is SubmissionStatus.FAILED
    assert outcome.status is SubmissionStatus.WRONG_ANSWER


def test_visible_failure_still_ranks_above_hidden_failure():
    def script(stdin):
        if stdin == "crash":
            return ExecutionResult(status=ExecutionStatus.RUNTIME_ERROR, stderr="boom", exit_code=1)
        return _slow_on("slow")(stdin)

    question = _question([("crash", "x", False), ("slow", "x", True)])
    outcome = Judge(FakeExecutor(script)).evaluate(question, "c", "python", question.test_cases)

    assert outcome.status is SubmissionStatus.RUNTIME_ERROR


def test_run_mode_uses_sample_test_cases_property():
    question = _question([("h", "h", True), ("s1", "s1", False)])
    assert Judge.select_test_cases(question, JudgeMode.RUN) == question.sample_test_cases


def test_compilation_error_short_circuits_remaining_cases():
    executor = FakeExecutor(lambda stdin: ExecutionResult(
        status=ExecutionStatus.COMPILATION_ERROR,
        stderr="main.cpp:1: error",
        compile_error="main.cpp:1: error",
    ))
    question = _question([("1", "1", False), ("2", "2", False), ("3", "3", True)])
    outcome = Judge(executor).evaluate(question, "int main(", "cpp", question.test_cases)

    assert len(executor.calls) == 1
    assert outcome.total == 3
    assert all(r.verdict is SubmissionStatus.COMPILATION_ERROR for r in outcome.results)
    assert outcome.results[1].stderr == "main.cpp:1: error"
    assert outcome.status is SubmissionStatus.COMPILATION_ERROR
    assert outcome.score == 0


def test_sandbox_error_raises_code_execution_error():
    executor = FakeExecutor(lambda stdin: ExecutionResult(status=ExecutionStatus.ERROR, stderr="spawn failed"))
    question = _question([("1", "1", False)])
    with pytest.raises(CodeExecutionError):
        Judge(executor).evaluate(question, "c", "python", question.test_cases)


def test_overall_status_of_empty_results_is_not_accepted():
    assert Judge.overall_status([]) is SubmissionStatus.WRONG_ANSWER
