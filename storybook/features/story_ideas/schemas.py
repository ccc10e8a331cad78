# storybook/features/story_ideas/schemas.py
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storybook.schemas import Gender, check_url


class IdeaCharacter(BaseModel):
    name: str
    gender: Gender = Gender.unspecified

    @field_validator("gender", mode="before")
    @classmethod
    def _default_gender(cls, v):
        return Gender.unspecified if v is None else v


class StoryIdeaRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    photo_urls: List[str] = Field(..., min_length=1, alias="photoUrls")
    characters: List[IdeaCharacter] = Field(default_factory=list)
    character_names: List[str] = Field(default_factory=list, alias="characterNames")  # older clients send names only
    age_range: str = Field("5-7", alias="ageRange")

    @field_validator("photo_urls")
    @classmethod
    def _photo_urls_are_http(cls, v):
        return [check_url(u) for u in v]


class StoryIdeaResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    suggested_idea: str = Field(..., alias="suggestedIdea")
    photo_count: int = Field(..., alias="photoCount")
