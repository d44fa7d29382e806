"""Academic-integrity violation model"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Index, CheckConstraint
from sqlalchemy.sql import func

from examjudge.core.database import Base


class Violation(Base):
    """Violation records materialized from plagiarism findings."""

    __tablename__ = "violations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    exam_id = Column(String(64), nullable=True, index=True)
    type = Column(String(32), nullable=False, default="plagiarism")
    severity = Column(String(16), nullable=False, default="medium")
    description = Column(Text, nullable=False, default="")
    metadata_json = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_violations_created_at", "created_at"),
        CheckConstraint("severity IN ('low', 'medium', 'high', 'critical')", name="chk_violation_severity"),
    )
