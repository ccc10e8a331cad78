# storybook/__init__.py
from .config import config
from .logger import get_logger
from .schemas import Character, StoryDocument, StoryPage, StoryRequest


__all__ = ["config",
           "get_logger",
           "Character",
           "StoryDocument",
           "StoryPage",
           "StoryRequest",
           ]
