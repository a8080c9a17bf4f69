"""Runtime settings read from the environment."""

import os

CHAT_PROVIDER = os.getenv("CHAT_PROVIDER", "openai").lower()

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or os.getenv("OPENAI_API_TOKEN")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4")

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")

CHAT_TEMPERATURE = float(os.getenv("CHAT_TEMPERATURE", "0.6"))
CHAT_MAX_TOKENS = int(os.getenv("CHAT_MAX_TOKENS", "500"))

RATE_LIMIT = int(os.getenv("RATE_LIMIT", "50"))
RATE_LIMIT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", "60"))
