# flowguard/core/config.py

import os
from dotenv import load_dotenv

load_dotenv()


def _csv(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Process-wide configuration read from the environment (and .env).
    """

    OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
    LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://openrouter.ai/api/v1")
    LLM_MODEL = os.getenv("LLM_MODEL", "openai/gpt-oss-20b")
    LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

    DB_PATH = os.getenv("FLOWGUARD_DB_PATH", "data/flowguard.db")
    MAX_INPUT_LENGTH = int(os.getenv("MAX_INPUT_LENGTH", "2000"))

    N8N_TIMEOUT_SECONDS = float(os.getenv("N8N_TIMEOUT_SECONDS", "30"))

    DENIED_NODE_TYPES = _csv("DENIED_NODE_TYPES")
    DENIED_HOSTS = _csv("DENIED_HOSTS")
    BLOCK_PRIVATE_HOSTS = _flag("BLOCK_PRIVATE_HOSTS", True)

    CONVERSATION_CACHE_SECONDS = float(os.getenv("CONVERSATION_CACHE_SECONDS", "30"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
