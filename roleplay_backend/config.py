"""
Application settings, read from the environment (a local .env is loaded by run.py).
"""
import os


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    HOST = os.getenv("HOST", "127.0.0.1")
    PORT = int(os.getenv("PORT", "5000"))
    DEBUG = _as_bool(os.getenv("DEBUG", "false"))

    ALLOWED_ORIGINS = [
        o.strip()
        for o in os.getenv("ALLOWED_ORIGINS", "http://127.0.0.1:5173,http://localhost:5173").split(",")
        if o.strip()
    ]

    # Ollama
    OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434")
    CHAT_MODEL = os.getenv("CHAT_MODEL", "qwen2.5:3b")
    FEEDBACK_MODEL = os.getenv("FEEDBACK_MODEL", "qwen2.5:3b")
    LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))
    LLM_KEEP_ALIVE = os.getenv("LLM_KEEP_ALIVE", "5m")

    # Load the built-in scenario catalogue into the store on startup
    SEED_SCENARIOS = _as_bool(os.getenv("SEED_SCENARIOS", "true"))
