# storybook/features/stories/schemas.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from storybook.schemas import StoryPage


class UpdateStoryTextRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    story_id: str = Field(..., min_length=1, alias="storyId")
    page_index: int = Field(..., ge=0, alias="pageIndex")
    new_text: str = Field(..., min_length=1, alias="newText")


class RegenerateImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    story_id: str = Field(..., min_length=1, alias="storyId")
    page_index: int = Field(..., ge=0, alias="pageIndex")
    comment: Optional[str] = None


class StoryActionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    image_url: Optional[str] = Field(None, alias="imageUrl")


class RandomStoryResponse(BaseModel):
    """Showcase preview: the first page only."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    subtitle: str
    created_at: str = Field(..., alias="createdAt")
    preview_page: Optional[StoryPage] = Field(None, alias="previewPage")
    total_pages: int = Field(..., alias="totalPages")
