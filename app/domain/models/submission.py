# app/domain/models/submission.py
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from app.domain.models.credit_note import CreditNoteValidation
from app.domain.models.lateness import LateReason, LatenessVerdict


class UploadedFile(BaseModel):
    filename: str
    content: bytes


class SubmitDecision(BaseModel):
    allowed: bool
    errors: List[str] = Field(default_factory=list)
    reopen_late_modal: bool = False
    verdict: Optional[LatenessVerdict] = None


class SubmissionStatus(str, Enum):
    REGISTERED = "registered"
    VALIDATION_ERROR = "validation_error"
    BLOCKED = "blocked"
    DUPLICATE = "duplicate"


class SubmissionResult(BaseModel):
    success: bool
    status: SubmissionStatus
    message: str
    errors: List[str] = Field(default_factory=list)
    invoice_id: Optional[str] = None
    late_modal_reason: Optional[LateReason] = None
    verdict: Optional[LatenessVerdict] = None
    credit_note_validation: Optional[CreditNoteValidation] = None
