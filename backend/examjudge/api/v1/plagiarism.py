"""Plagiarism routes - cohort scans and pairwise comparison (admin only)"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from examjudge.config import settings
from examjudge.core.database import get_db
from examjudge.schemas.plagiarism import (
    CompareRequest,
    CompareResponse,
    DetectPlagiarismRequest,
    FlagViolationsResponse,
    PlagiarismStatsResponse,
)
from examjudge.api.deps import CurrentUser, get_current_admin_user
from examjudge.services import similarity
from examjudge.services.plagiarism_detector import CodeSample, plagiarism_detector
from examjudge.services.submission_service import submission_service
from examjudge.services.violation_service import violation_service

router = APIRouter()


@router.post("/detect", response_model=PlagiarismStatsResponse)
def detect_plagiarism(
    request: DetectPlagiarismRequest,
    current_user: CurrentUser = Depends(get_current_admin_user),
):
    """Scan a caller-supplied submission set"""
    samples = [CodeSample(**s.model_dump()) for s in request.submissions]
    return plagiarism_detector.stats(samples, request.threshold).to_dict()


@router.post("/compare", response_model=CompareResponse)
def compare_two_submissions(
    request: CompareRequest,
    current_user: CurrentUser = Depends(get_current_admin_user),
):
    """Compare two pieces of code, raw and normalized"""
    normalized = similarity.compare(request.code1, request.code2, normalize_code=True)
    return {
        "raw_similarity": similarity.compare(request.code1, request.code2, normalize_code=False),
        "normalized_similarity": normalized,
        "is_suspicious": normalized >= request.threshold,
        "threshold": request.threshold,
    }


@router.get("/questions/{question_id}", response_model=PlagiarismStatsResponse)
def question_plagiarism_stats(
    question_id: int,
    threshold: float = Query(settings.PLAGIARISM_DEFAULT_THRESHOLD, ge=0, le=100),
    current_user: CurrentUser = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Scan the latest graded submission of every user for a question"""
    submission_service.get_question(db, question_id)
    submissions = submission_service.get_latest_submitted(db, question_id)
    return plagiarism_detector.stats(submissions, threshold).to_dict()


@router.post("/questions/{question_id}/flag", response_model=FlagViolationsResponse)
def flag_question_plagiarism(
    question_id: int,
    threshold: float = Query(settings.PLAGIARISM_DEFAULT_THRESHOLD, ge=0, le=100),
    current_user: CurrentUser = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Record a plagiarism violation for both users of every flagged pair"""
    question = submission_service.get_question(db, question_id)
    submissions = submission_service.get_latest_submitted(db, question_id)
    pairs = plagiarism_detector.detect(submissions, threshold)
    violations = violation_service.record_plagiarism(
        db, pairs, exam_id=question.exam_id, question_id=question.id
    )
    return {
        "success": True,
        "flagged_pairs": len(pairs),
        "violations_created": len(violations),
    }
