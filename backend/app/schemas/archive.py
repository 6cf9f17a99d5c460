from typing import List, Optional, Literal
from datetime import datetime
from pydantic import BaseModel, Field

from app.schemas.time_entry import TimeEntry

ProcessingStatus = Literal['pending', 'processing', 'completed', 'error']


class ArchiveCreate(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    processing_status: ProcessingStatus = 'completed'
    entries: List[TimeEntry] = Field(default_factory=list, description="Pre-parsed historical entries")
    error_message: Optional[str] = None


class ArchiveInDB(BaseModel):
    id: int
    report_id: int
    filename: str
    processing_status: ProcessingStatus
    entries: List[TimeEntry] = Field(default_factory=list)
    error_message: Optional[str] = None
    uploaded_at: datetime

    class Config:
        from_attributes = True
