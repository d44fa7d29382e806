"""Pydantic schemas for API validation"""

from examjudge.schemas.coding import (
    LanguageEnum,
    RunCodeRequest,
    SubmitCodeRequest,
    TestCaseResultResponse,
    RunCodeResponse,
    SubmitCodeResponse,
    SubmissionResponse,
    AdminSubmissionResponse,
)
from examjudge.schemas.plagiarism import (
    DetectPlagiarismRequest,
    CompareRequest,
    CompareResponse,
    PlagiarismStatsResponse,
    FlagViolationsResponse,
)

__all__ = [
    "LanguageEnum", "RunCodeRequest", "SubmitCodeRequest", "TestCaseResultResponse",
    "RunCodeResponse", "SubmitCodeResponse", "SubmissionResponse", "AdminSubmissionResponse",
    "DetectPlagiarismRequest", "CompareRequest", "CompareResponse",
    "PlagiarismStatsResponse", "FlagViolationsResponse",
]
