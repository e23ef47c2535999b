from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field

class ReportSection(BaseModel):
    title: str
    content: str

class Report(BaseModel):
    """The structured report stored on a completed job."""
    title: str
    summary: str = ""
    sections: List[ReportSection] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    generatedAt: Optional[str] = None
    month: Optional[Any] = None
    year: Optional[Any] = None
    type: Optional[str] = None
    # Set only on a degraded report
    error: Optional[str] = None

    class Config:
        extra = "allow"

class ParsedReport(BaseModel):
    """The provider's completion decoded into a report object."""
    data: Dict[str, Any]

class DegradedReport(BaseModel):
    """The provider's completion could not be decoded; ``reason`` says why."""
    reason: str

ParseOutcome = Union[ParsedReport, DegradedReport]
