"""Coding question and test case models"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Index, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from examjudge.core.database import Base
from examjudge.services.language_registry import default_code_templates


class CodingQuestion(Base):
    """Coding question - read-only to the judge, managed by the exam service"""

    __tablename__ = "coding_questions"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(String(64), nullable=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    constraints = Column(Text, nullable=False, default="")
    default_code = Column(JSON, nullable=False, default=default_code_templates)
    time_limit_ms = Column(Integer, nullable=False, default=2000)
    # Stored for display; the sandbox does not enforce memory limits.
    memory_limit_mb = Column(Integer, nullable=False, default=128)
    difficulty = Column(String(10), nullable=False, default="Medium")
    points = Column(Integer, nullable=False, default=10)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    test_cases = relationship(
        "TestCase",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="TestCase.position",
    )
    submissions = relationship("Submission", back_populates="question", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_coding_questions_exam', 'exam_id'),
        CheckConstraint('points >= 0', name='chk_points'),
        CheckConstraint("difficulty IN ('Easy', 'Medium', 'Hard')", name='chk_difficulty'),
    )

    def __repr__(self):
        return f"<CodingQuestion(id={self.id}, title='{self.title}', points={self.points})>"

    @property
    def sample_test_cases(self):
        return [tc for tc in self.test_cases if not tc.is_hidden]


class TestCase(Base):
    """Single stdin/stdout test case of a coding question"""

    __test__ = False

    __tablename__ = "test_cases"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("coding_questions.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    input = Column(Text, nullable=False, default="")
    expected_output = Column(Text, nullable=False)
    is_hidden = Column(Boolean, nullable=False, default=False)

    question = relationship("CodingQuestion", back_populates="test_cases")

    __table_args__ = (
        Index('idx_test_cases_question', 'question_id'),
    )

    def __repr__(self):
        return f"<TestCase(id={self.id}, question_id={self.question_id}, hidden={self.is_hidden})>"
