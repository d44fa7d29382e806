"""Run/submit request and response schemas"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum


class LanguageEnum(str, Enum):
    """Supported programming languages"""
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    JAVA = "java"
    CPP = "cpp"


class _CodeRequest(BaseModel):
    question_id: int = Field(..., gt=0)
    language: LanguageEnum
    code: str = Field(..., min_length=1, max_length=51200)

    @field_validator('code')
    @classmethod
    def sanitize_code(cls, v):
        """Sanitize code input"""
        v = v.replace('\x00', '')
        if not v.strip():
            raise ValueError('Code must not be blank')
        return v


class RunCodeRequest(_CodeRequest):
    """Run request (first sample test case only)"""


class SubmitCodeRequest(_CodeRequest):
    """Graded submission request"""


class _CaseResultFields(BaseModel):
    test_case_id: Optional[int] = None
    is_hidden: bool = False
    input: Optional[str] = None
    expected_output: Optional[str] = None
    actual_output: Optional[str] = None
    stderr: Optional[str] = None
    status: str
    execution_time_ms: float = 0.0

    class Config:
        from_attributes = True


class TestCaseResultResponse(_CaseResultFields):
    """Per test case result; hidden cases carry only status and timing"""
    __test__ = False

    @model_validator(mode="after")
    def redact_hidden(self):
        if self.is_hidden:
            self.input = None
            self.expected_output = "Hidden"
            self.actual_output = None
            self.stderr = None
        return self


class AdminTestCaseResultResponse(_CaseResultFields):
    """Unredacted test case result - admin only"""


class RunSummary(BaseModel):
    total: int
    passed: int
    failed: int


class RunCodeResponse(BaseModel):
    success: bool = True
    type: str = "run"
    status: str
    results: List[TestCaseResultResponse]
    summary: RunSummary


class SubmitCodeResponse(BaseModel):
    success: bool = True
    type: str = "submit"
    submission_id: int
    status: str
    score: int
    total_tests: int
    execution_time_ms: float = 0.0
    results: List[TestCaseResultResponse]


class SubmissionResponse(BaseModel):
    """Submission history entry"""
    id: int
    question_id: int
    user_id: str
    user_name: Optional[str] = None
    language: str
    status: str
    score: int
    execution_time_ms: float
    is_submitted: bool
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    test_case_results: List[TestCaseResultResponse] = []

    class Config:
        from_attributes = True


class AdminSubmissionResponse(SubmissionResponse):
    """Submission with source code - admin only"""
    code: str
    error_message: Optional[str] = None
    test_case_results: List[AdminTestCaseResultResponse] = []
