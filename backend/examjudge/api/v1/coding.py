"""Coding routes - run and submit code"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from examjudge.core.database import get_db
from examjudge.schemas.coding import (
    RunCodeRequest,
    RunCodeResponse,
    SubmitCodeRequest,
    SubmitCodeResponse,
    SubmissionResponse,
    AdminSubmissionResponse,
)
from examjudge.api.deps import CurrentUser, get_current_user, get_current_admin_user
from examjudge.services.submission_service import submission_service

router = APIRouter()


@router.post("/run", response_model=RunCodeResponse)
def run_code(
    request: RunCodeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Run code against the first sample test case (not graded, not saved)
    """
    return submission_service.run_code(
        db=db,
        question_id=request.question_id,
        code=request.code,
        language=request.language.value,
    )


@router.post("/submit", response_model=SubmitCodeResponse)
def submit_code(
    request: SubmitCodeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Submit code for grading against all test cases
    """
    return submission_service.submit_code(
        db=db,
        user_id=current_user.id,
        question_id=request.question_id,
        code=request.code,
        language=request.language.value,
        user_name=current_user.name,
    )


@router.get("/submissions/all/{question_id}", response_model=List[AdminSubmissionResponse])
def get_all_submissions(
    question_id: int,
    current_user: CurrentUser = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Get all submissions for a question (admin only)"""
    submissions = submission_service.get_question_submissions(db, question_id)
    return [AdminSubmissionResponse.model_validate(sub) for sub in submissions]


@router.get("/submissions/{question_id}", response_model=List[SubmissionResponse])
def get_my_submissions(
    question_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get current user's submission history for a question"""
    submissions = submission_service.get_user_submissions(db, current_user.id, question_id)
    return [SubmissionResponse.model_validate(sub) for sub in submissions]
