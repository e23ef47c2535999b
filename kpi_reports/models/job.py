from enum import Enum
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self):
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

class ReportType(str, Enum):
    MONTHLY = "monthly"
    COMPARISON = "comparison"

    def __str__(self):
        return self.value

class ReportJob(BaseModel):
    """One requested report, as stored in the document store.

    Field aliases are the stored (camelCase) document keys.
    """
    id: str
    type: str
    user_id: str = Field(alias="userId")
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = JobStatus.PENDING
    retry_count: int = Field(0, alias="retryCount")
    max_retries: int = Field(3, alias="maxRetries")
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    claim_token: Optional[str] = Field(None, alias="claimToken")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")

    class Config:
        populate_by_name = True

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "ReportJob":
        return cls(id=doc_id, **data)
