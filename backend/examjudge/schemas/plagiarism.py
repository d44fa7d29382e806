"""Plagiarism detection schemas"""

from pydantic import BaseModel, Field
from typing import List, Optional, Union

from examjudge.config import settings

SubmissionKey = Union[int, str]


class CodeSampleIn(BaseModel):
    """One submission supplied by the caller"""
    id: SubmissionKey
    user_id: SubmissionKey
    user_name: Optional[str] = None
    code: str = Field(..., max_length=51200)


class DetectPlagiarismRequest(BaseModel):
    submissions: List[CodeSampleIn] = Field(default_factory=list)
    threshold: float = Field(default=settings.PLAGIARISM_DEFAULT_THRESHOLD, ge=0, le=100)


class CompareRequest(BaseModel):
    code1: str = Field(..., max_length=51200)
    code2: str = Field(..., max_length=51200)
    threshold: float = Field(default=settings.PLAGIARISM_DEFAULT_THRESHOLD, ge=0, le=100)


class CompareResponse(BaseModel):
    raw_similarity: float
    normalized_similarity: float
    is_suspicious: bool
    threshold: float


class SubmissionRef(BaseModel):
    id: SubmissionKey
    user_id: SubmissionKey
    user_name: Optional[SubmissionKey] = None
    code: str


class SimilarityPairResponse(BaseModel):
    submission1: SubmissionRef
    submission2: SubmissionRef
    similarity: float
    threshold: float
    is_flagged: bool


class PlagiarismStatsResponse(BaseModel):
    total_submissions: int
    total_comparisons: int
    suspicious_pairs: int
    flagged_percentage: float
    average_similarity: float
    highest_similarity: float
    threshold: float
    pairs: List[SimilarityPairResponse]


class FlagViolationsResponse(BaseModel):
    success: bool = True
    flagged_pairs: int
    violations_created: int
