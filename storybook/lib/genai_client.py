# storybook/lib/genai_client.py
from google import genai
from storybook.config import config
from storybook.errors import ConfigurationError

_client = None

def get_client() -> genai.Client:
    """Google GenAI client, created on first use so a missing key only matters for photo stories."""
    global _client
    if _client is None:
        if not config.google_api_key:
            raise ConfigurationError(["GOOGLE_API_KEY"])
        _client = genai.Client(api_key=config.google_api_key)
    return _client
