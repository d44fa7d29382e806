"""Submission and test case result models"""

from enum import Enum

from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, Boolean, Index, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from examjudge.core.database import Base


class SubmissionStatus(str, Enum):
    """Lifecycle and verdict values shared by submissions and case results"""
    PENDING = "Pending"
    RUNNING = "Running"
    ACCEPTED = "Accepted"
    WRONG_ANSWER = "Wrong Answer"
    TIME_LIMIT_EXCEEDED = "Time Limit Exceeded"
    RUNTIME_ERROR = "Runtime Error"
    COMPILATION_ERROR = "Compilation Error"
    # Only ever reported for hidden test cases.
    FAILED = "Failed"


_SUBMISSION_STATUSES = ", ".join(
    f"'{s.value}'" for s in SubmissionStatus if s is not SubmissionStatus.FAILED
)


class Submission(Base):
    """Submission model - append-only history of graded code submissions"""

    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(String(64), nullable=True)
    question_id = Column(Integer, ForeignKey("coding_questions.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), nullable=False)
    user_name = Column(String(100), nullable=True)
    language = Column(String(20), nullable=False)
    code = Column(Text, nullable=False)
    status = Column(String(32), default=SubmissionStatus.PENDING.value, nullable=False)
    score = Column(Integer, default=0, nullable=False)
    execution_time_ms = Column(Float, default=0.0, nullable=False)
    is_submitted = Column(Boolean, default=False, nullable=False)
    error_message = Column(Text)
    submitted_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True))

    # Relationships
    question = relationship("CodingQuestion", back_populates="submissions")
    test_case_results = relationship(
        "TestCaseResult",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="TestCaseResult.position",
    )

    __table_args__ = (
        Index('idx_submissions_user_question', 'user_id', 'question_id'),
        Index('idx_submissions_question', 'question_id'),
        Index('idx_submissions_status', 'status'),
        CheckConstraint('score >= 0', name='chk_score_non_negative'),
        CheckConstraint('execution_time_ms >= 0', name='chk_execution_time'),
        CheckConstraint(f"status IN ({_SUBMISSION_STATUSES})", name='chk_status'),
    )

    def __repr__(self):
        return f"<Submission(id={self.id}, user_id='{self.user_id}', question_id={self.question_id}, status='{self.status}')>"


class TestCaseResult(Base):
    """Per test case verdict of a submission"""

    __test__ = False

    __tablename__ = "test_case_results"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False)
    test_case_id = Column(Integer, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    is_hidden = Column(Boolean, nullable=False, default=False)
    input = Column(Text)
    expected_output = Column(Text)
    actual_output = Column(Text)
    stderr = Column(Text)
    status = Column(String(32), nullable=False)
    execution_time_ms = Column(Float, default=0.0)

    # Relationships
    submission = relationship("Submission", back_populates="test_case_results")

    __table_args__ = (
        Index('idx_test_case_results_submission', 'submission_id'),
    )

    def __repr__(self):
        return f"<TestCaseResult(id={self.id}, submission_id={self.submission_id}, status='{self.status}')>"
