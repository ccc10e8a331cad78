# storybook/schemas.py
from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MIN_PAGES = 3
MAX_PAGES = 10
DEFAULT_PAGES = 6


class Gender(str, Enum):
    female = "female"
    male = "male"
    unspecified = "unspecified"


PlotOption = Literal["photos", "describe", "starter"]


def check_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"not an http(s) URL: {url}")
    return url


class _CamelModel(BaseModel):
    # wire format is camelCase; attribute access stays snake_case
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Character(_CamelModel):
    id: str
    name: str
    is_main: bool = Field(..., alias="isMain")
    gender: Gender = Gender.unspecified
    uploaded_photo_url: Optional[str] = Field(None, alias="uploadedPhotoUrl")

    @field_validator("gender", mode="before")
    @classmethod
    def _default_gender(cls, v):
        return Gender.unspecified if v is None else v

    @field_validator("uploaded_photo_url")
    @classmethod
    def _photo_url_is_http(cls, v):
        if v is None:
            return v
        return check_url(v)


class StoryRequest(_CamelModel):
    characters: List[Character] = Field(..., min_length=1)
    age_range: str = Field(..., alias="ageRange")
    story_plot_option: PlotOption = Field(..., alias="storyPlotOption")
    story_description: Optional[str] = Field(None, alias="storyDescription")
    story_style: Optional[str] = Field(None, alias="storyStyle")
    story_length_target_pages: int = Field(DEFAULT_PAGES, ge=MIN_PAGES, le=MAX_PAGES, alias="storyLengthTargetPages")
    email: Optional[str] = None
    uploaded_story_photo_urls: List[str] = Field(default_factory=list, alias="uploadedStoryPhotoUrls")

    @field_validator("story_length_target_pages", mode="before")
    @classmethod
    def _default_pages(cls, v):
        return DEFAULT_PAGES if v is None else v

    @field_validator("uploaded_story_photo_urls", mode="before")
    @classmethod
    def _default_photos(cls, v):
        return [] if v is None else v

    @field_validator("uploaded_story_photo_urls")
    @classmethod
    def _photo_urls_are_http(cls, v):
        return [check_url(u) for u in v]

    @field_validator("email")
    @classmethod
    def _email_shape(cls, v):
        if v is None or not v.strip():
            return None
        local, _, domain = v.strip().partition("@")
        if not local or "." not in domain:
            raise ValueError("email must be a valid address")
        return v.strip()

    @model_validator(mode="after")
    def _mode_requirements(self):
        if self.story_plot_option == "describe" and not (self.story_description or "").strip():
            raise ValueError("storyDescription is required when storyPlotOption is 'describe'")
        if self.story_plot_option == "photos" and not self.uploaded_story_photo_urls:
            raise ValueError("at least one uploadedStoryPhotoUrls entry is required when storyPlotOption is 'photos'")
        return self

    @property
    def main_character(self) -> Character:
        return next((c for c in self.characters if c.is_main), self.characters[0])

    @property
    def other_characters(self) -> List[Character]:
        main = self.main_character
        return [c for c in self.characters if c is not main and c.name.strip()]


class StoryPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    image_url: Optional[str] = Field(None, alias="imageUrl")

    @field_validator("image_url")
    @classmethod
    def _no_empty_url(cls, v):
        # a page is either illustrated or explicitly missing its picture
        return v or None


class StoryDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    subtitle: str
    created_at: str = Field(..., alias="createdAt")
    pages: List[StoryPage]
    characters: List[Character] = Field(default_factory=list)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
