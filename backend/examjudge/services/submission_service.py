"""Submission service - run (sample-only) and submit (graded, persisted) flows"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from examjudge.core.exceptions import (
    BaseAPIException,
    CodeExecutionError,
    ResourceNotFoundError,
    ValidationError,
)
from examjudge.models.question import CodingQuestion
from examjudge.models.submission import Submission, SubmissionStatus, TestCaseResult
from examjudge.services.judge import Judge, JudgeMode, JudgeOutcome, judge as default_judge
from examjudge.services.language_registry import LanguageRegistry, language_registry
from examjudge.services.security_validator import SecurityValidator, security_validator
from examjudge.config import settings
import logging

logger = logging.getLogger(__name__)


class SubmissionService:
    """Service for running and submitting code"""

    def __init__(
        self,
        validator: Optional[SecurityValidator] = None,
        judge: Optional[Judge] = None,
        registry: Optional[LanguageRegistry] = None,
    ):
        self.validator = validator or security_validator
        self.judge = judge or default_judge
        self.registry = registry or language_registry

    def _check_request(self, code: str, language: str) -> None:
        """Reject bad input before anything is loaded or executed."""
        if not code or not code.strip():
            raise ValidationError("Code must not be empty")
        if len(code) > settings.MAX_CODE_SIZE:
            raise ValidationError(f"Code exceeds {settings.MAX_CODE_SIZE} characters")
        self.registry.get(language)
        self.validator.ensure_safe(code, language)

    @staticmethod
    def get_question(db: Session, question_id: int) -> CodingQuestion:
        question = db.query(CodingQuestion).filter(CodingQuestion.id == question_id).first()
        if not question:
            raise ResourceNotFoundError(f"Question {question_id}")
        return question

    def run_code(
        self,
        db: Session,
        question_id: int,
        code: str,
        language: str
    ) -> Dict[str, Any]:
        """
        Run code against the first sample test case

        Nothing is persisted; the response is the smoke-test verdict.

        Args:
            db: Database session
            question_id: Question ID
            code: Source code
            language: Programming language

        Returns:
            Results and summary
        """
        self._check_request(code, language)
        question = self.get_question(db, question_id)
        test_cases = self.judge.select_test_cases(question, JudgeMode.RUN)

        try:
            outcome = self.judge.evaluate(question, code, language, test_cases)
        except BaseAPIException:
            raise
        except Exception as e:
            logger.exception(f"Run failed for question {question_id}: {e}")
            raise CodeExecutionError("Failed to run code")

        results = [r.to_public() for r in outcome.results]
        return {
            "type": JudgeMode.RUN.value,
            "status": outcome.status.value,
            "results": results,
            "summary": {
                "total": outcome.total,
                "passed": outcome.passed,
                "failed": outcome.total - outcome.passed,
            },
        }

    def submit_code(
        self,
        db: Session,
        user_id: str,
        question_id: int,
        code: str,
        language: str,
        user_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Submit code for grading against every test case

        A new Submission row is created per call; history is append-only.

        Args:
            db: Database session
            user_id: Submitting user (resolved by the identity layer)
            question_id: Question ID
            code: Source code
            language: Programming language
            user_name: Optional display name kept for plagiarism reports

        Returns:
            Submission id, verdict, score and redacted per-case results
        """
        self._check_request(code, language)
        question = self.get_question(db, question_id)
        test_cases = self.judge.select_test_cases(question, JudgeMode.SUBMIT)

        # Create submission record
        submission = Submission(
            exam_id=question.exam_id,
            question_id=question.id,
            user_id=str(user_id),
            user_name=user_name,
            language=language,
            code=code,
            status=SubmissionStatus.RUNNING.value,
            is_submitted=True,
        )
        db.add(submission)
        db.commit()
        db.refresh(submission)

        try:
            outcome = self.judge.evaluate(question, code, language, test_cases)
        except Exception as e:
            logger.exception(f"Submission {submission.id} execution error: {e}")
            submission.status = SubmissionStatus.RUNTIME_ERROR.value
            submission.score = 0
            submission.error_message = "Internal execution failure"
            submission.completed_at = datetime.utcnow()
            db.commit()
            raise CodeExecutionError("Failed to submit code")

        self._apply_outcome(submission, outcome)
        db.commit()
        db.refresh(submission)

        logger.info(
            f"Submission {submission.id} by user {submission.user_id} on question {question.id}: "
            f"{submission.status} ({submission.score}/{question.points})"
        )
        return {
            "type": JudgeMode.SUBMIT.value,
            "submission_id": submission.id,
            "status": submission.status,
            "score": submission.score,
            "total_tests": outcome.total,
            "execution_time_ms": submission.execution_time_ms,
            "results": [r.to_public() for r in outcome.results],
        }

    @staticmethod
    def _apply_outcome(submission: Submission, outcome: JudgeOutcome) -> None:
        submission.status = outcome.status.value
        submission.score = outcome.score
        submission.execution_time_ms = outcome.execution_time_ms
        submission.completed_at = datetime.utcnow()
        for verdict in outcome.results:
            public = verdict.to_public()
            submission.test_case_results.append(TestCaseResult(
                test_case_id=verdict.test_case_id,
                position=verdict.position,
                is_hidden=verdict.is_hidden,
                input=verdict.input,
                expected_output=public["expected_output"],
                # Actual output is kept for instructors even on hidden cases.
                actual_output=verdict.actual_output,
                stderr=verdict.stderr,
                status=public["status"],
                execution_time_ms=verdict.execution_time_ms,
            ))

    @staticmethod
    def get_user_submissions(
        db: Session,
        user_id: str,
        question_id: int
    ) -> List[Submission]:
        """Get a user's submissions for a question, newest first"""
        return (
            db.query(Submission)
            .filter(Submission.user_id == str(user_id), Submission.question_id == question_id)
            .order_by(Submission.submitted_at.desc(), Submission.id.desc())
            .all()
        )

    @staticmethod
    def get_question_submissions(db: Session, question_id: int) -> List[Submission]:
        """Get all submissions for a question (admin)"""
        return (
            db.query(Submission)
            .filter(Submission.question_id == question_id)
            .order_by(Submission.submitted_at.desc(), Submission.id.desc())
            .all()
        )

    @staticmethod
    def get_latest_submitted(db: Session, question_id: int) -> List[Submission]:
        """
        Latest graded submission per user for a question

        This is the cohort fed to plagiarism detection: one entry per user so
        a student's own resubmissions are never compared with each other.
        """
        latest = (
            db.query(
                Submission.user_id,
                func.max(Submission.id).label("latest_id"),
            )
            .filter(
                Submission.question_id == question_id,
                Submission.is_submitted.is_(True),
                Submission.status != SubmissionStatus.RUNNING.value,
            )
            .group_by(Submission.user_id)
            .subquery()
        )
        return (
            db.query(Submission)
            .join(latest, Submission.id == latest.c.latest_id)
            .order_by(Submission.id.asc())
            .all()
        )


# Singleton instance
submission_service = SubmissionService()
