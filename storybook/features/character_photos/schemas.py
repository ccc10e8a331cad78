# storybook/features/character_photos/schemas.py
from pydantic import BaseModel


class PhotoUploadResponse(BaseModel):
    url: str
