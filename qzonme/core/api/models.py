from pydantic import BaseModel
from typing import Optional


class ErrorRecordModel(BaseModel):
    message: str
    resource_id: Optional[str] = None
    occurred_at: Optional[str] = None


class RunStatsModel(BaseModel):
    startTime: str
    endTime: Optional[str] = None
    imagesProcessed: int
    imagesDeleted: int
    errors: list[ErrorRecordModel]


class CleanupStatusResponseModel(BaseModel):
    currentJob: Optional[RunStatsModel] = None
    history: list[RunStatsModel]
    lastRun: Optional[str] = None
    nextRun: Optional[str] = None


class ImageUploadResponseModel(BaseModel):
    imageUrl: str
    publicId: str
