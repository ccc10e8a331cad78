# storybook/lib/openai_client.py
from openai import AsyncOpenAI
from storybook.config import config
from storybook.errors import ConfigurationError

_client = None

def get_client() -> AsyncOpenAI:
    """OpenAI client, created on first use; a missing key surfaces as ConfigurationError, not an import failure."""
    global _client
    if _client is None:
        if not config.openai_api_key:
            raise ConfigurationError(["OPENAI_API_KEY"])
        _client = AsyncOpenAI(api_key=config.openai_api_key)
    return _client
