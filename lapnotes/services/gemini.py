import os
from functools import lru_cache

from google import genai

MODEL_NAME = "gemini-2.5-flash"
API_KEY_MISSING = "Gemini API key not configured. Go to Settings to add it."


def resolve_api_key(api_key: str | None = None) -> str:
    return api_key or os.getenv("GEMINI_API_KEY", "")


@lru_cache(maxsize=4)
def client_for(api_key: str) -> genai.Client:
    """One shared client per key; the key can change at runtime via Settings."""
    return genai.Client(api_key=api_key)
