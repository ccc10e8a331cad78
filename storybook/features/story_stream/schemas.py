# storybook/features/story_stream/schemas.py
from typing import Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Step = Literal["validating", "writing", "illustrating", "saving"]
StepStatus = Literal["in_progress", "complete"]


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)
    event: ClassVar[str]

    def payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ConnectionEvent(_Event):
    event: ClassVar[str] = "connection"
    status: Literal["established"] = "established"


class IllustrationProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: int
    total: int
    detail: Optional[str] = None


class ProgressEvent(_Event):
    event: ClassVar[str] = "progress"
    step: Step
    status: StepStatus
    message: str
    illustration_progress: Optional[IllustrationProgress] = Field(None, alias="illustrationProgress")


class ImagePreviewEvent(_Event):
    event: ClassVar[str] = "image_preview"
    page_index: int = Field(..., alias="pageIndex")
    preview_url: str = Field(..., alias="previewUrl")


class CompleteEvent(_Event):
    event: ClassVar[str] = "complete"
    story_id: str = Field(..., alias="storyId")
    title: str
    message: str


class ErrorEvent(_Event):
    event: ClassVar[str] = "error"
    message: str
    details: Optional[Any] = None


StreamEvent = Union[ConnectionEvent, ProgressEvent, ImagePreviewEvent, CompleteEvent, ErrorEvent]
