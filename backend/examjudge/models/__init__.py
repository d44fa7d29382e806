"""Database models"""

from examjudge.models.question import CodingQuestion, TestCase
from examjudge.models.submission import Submission, SubmissionStatus, TestCaseResult
from examjudge.models.violation import Violation

__all__ = ["CodingQuestion", "TestCase", "Submission", "SubmissionStatus", "TestCaseResult", "Violation"]
