"""Violation service - materializes flagged plagiarism pairs."""

from __future__ import annotations

import json
import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from examjudge.models.violation import Violation
from examjudge.services.plagiarism_detector import SimilarityPair

logger = logging.getLogger(__name__)


def severity_for(similarity: float) -> str:
    if similarity >= 100:
        return "critical"
    if similarity >= 90:
        return "high"
    return "medium"


class ViolationService:
    """Persist plagiarism findings as per-user violation records."""

    @staticmethod
    def record_plagiarism(
        db: Session,
        pairs: Sequence[SimilarityPair],
        *,
        exam_id: Optional[str] = None,
        question_id: Optional[int] = None,
    ) -> List[Violation]:
        """One violation per user of every flagged pair."""
        violations: List[Violation] = []
        for pair in pairs:
            if not pair.flagged:
                continue
            for own, peer in ((pair.submission1, pair.submission2), (pair.submission2, pair.submission1)):
                metadata = {
                    "question_id": question_id,
                    "submission_id": own.id,
                    "peer_submission_id": peer.id,
                    "peer_user_id": peer.user_id,
                    "similarity": pair.similarity,
                    "threshold": pair.threshold,
                }
                violations.append(Violation(
                    user_id=str(own.user_id),
                    exam_id=exam_id,
                    type="plagiarism",
                    severity=severity_for(pair.similarity),
                    description=f"Code {pair.similarity}% similar to submission {peer.id}",
                    metadata_json=json.dumps(metadata, ensure_ascii=False),
                ))

        db.add_all(violations)
        db.commit()
        for violation in violations:
            db.refresh(violation)
        logger.info(f"Recorded {len(violations)} plagiarism violations (exam={exam_id}, question={question_id})")
        return violations


violation_service = ViolationService()
