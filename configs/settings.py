"""
Configuration management for ExamNotebook.

This module handles all configuration loading and validation.
It fails fast on missing required configuration to prevent
runtime errors and provide clear error messages.
"""
import os
from pathlib import Path
from typing import List
from dotenv import load_dotenv

# Load environment variables from .env file
# interpolate=False prevents $VAR expansion in values (API keys may contain $)
load_dotenv(interpolate=False)


# =============================================================================
# CONFIGURATION VALIDATION
# =============================================================================

class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


PLACEHOLDER_KEYS = [
    "your_google_api_key_here",
    "your_gemini_api_key_here",
    "AIzaSy_XXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX",
    "",
    None
]


def _env_flag(key: str, default: str) -> bool:
    return os.getenv(key, default).lower() == "true"


def get_gemini_keys() -> List[str]:
    """
    Collect configured Gemini API keys in rotation order.

    Numbered keys (GEMINI_API_KEY_1..9) come first. GEMINI_API_KEY or
    GOOGLE_API_KEY is only used when no numbered key is set.
    Placeholder values are skipped.
    """
    keys = []
    for i in range(1, 10):  # Support up to 9 keys
        key = os.getenv(f"GEMINI_API_KEY_{i}")
        if key not in PLACEHOLDER_KEYS:
            keys.append(key)

    if not keys:
        main_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        if main_key not in PLACEHOLDER_KEYS:
            keys.append(main_key)

    return keys


def get_gemini_key_count() -> int:
    """Count configured Gemini API keys (GEMINI_API_KEY_1..9 + fallback)."""
    return len(get_gemini_keys())


def validate_configuration(skip_api_check: bool = False) -> dict:
    """
    Validate all configuration and return validated config dict.

    Args:
        skip_api_check: If True, skip API key validation (keys may be added
            later through the operator endpoints)

    Returns:
        Dictionary with validated configuration values

    Raises:
        ConfigurationError: If any required configuration is missing
    """
    errors = []
    config = {}

    config['llm_transport'] = LLM_TRANSPORT
    if LLM_TRANSPORT not in ["rest", "litellm"]:
        errors.append(f"LLM_TRANSPORT must be 'rest' or 'litellm', got: {LLM_TRANSPORT}")

    if not skip_api_check:
        keys = get_gemini_keys()
        if not keys:
            errors.append(
                "❌ No Gemini API key is configured!\n"
                "   1. Get your API key at: https://aistudio.google.com/app/apikey\n"
                "   2. Add it to your .env file: GEMINI_API_KEY_1=AIzaSy_your_actual_key"
            )
        config['key_count'] = len(keys)

    if not 0.0 <= TEMPERATURE <= 2.0:
        errors.append(f"TEMPERATURE must be between 0 and 2, got: {TEMPERATURE}")
    if MAX_OUTPUT_TOKENS <= 0:
        errors.append(f"MAX_OUTPUT_TOKENS must be positive, got: {MAX_OUTPUT_TOKENS}")
    if REQUEST_TIMEOUT_SECONDS <= 0:
        errors.append(f"REQUEST_TIMEOUT_SECONDS must be positive, got: {REQUEST_TIMEOUT_SECONDS}")

    config['data_dir'] = str(DATA_DIR)

    # Collect all errors
    if errors:
        error_msg = "\n\nConfiguration Errors:\n" + "\n".join(f"  • {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return config


# =============================================================================
# BASE PATHS
# =============================================================================

BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))

KEYRING_STATE_PATH = os.getenv("KEYRING_STATE_PATH", str(DATA_DIR / "keyring.json"))
DOCUMENTS_PATH = os.getenv("DOCUMENTS_PATH", str(DATA_DIR / "documents.json"))
SEARCH_HISTORY_PATH = os.getenv("SEARCH_HISTORY_PATH", str(DATA_DIR / "search_history.json"))

# =============================================================================
# LLM CONFIGURATION
# =============================================================================

# "rest" calls the generateContent endpoint directly, "litellm" goes through LiteLLM
LLM_TRANSPORT = os.getenv("LLM_TRANSPORT", "rest").lower()
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-exp")
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL",
    "https://generativelanguage.googleapis.com/v1beta/models"
).rstrip("/")

# Generation parameters
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.7"))
TOP_K = int(os.getenv("TOP_K", "40"))
TOP_P = float(os.getenv("TOP_P", "0.95"))
MAX_OUTPUT_TOKENS = int(os.getenv("MAX_OUTPUT_TOKENS", "1024"))

# Content-safety thresholds sent with every request
SAFETY_THRESHOLD = os.getenv("SAFETY_THRESHOLD", "BLOCK_MEDIUM_AND_ABOVE")
SAFETY_CATEGORIES = [
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
]

# Rotate to the next key when one fails
FALLBACK_ENABLED = _env_flag("FALLBACK_ENABLED", "true")
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "60"))

# =============================================================================
# SEARCH SETTINGS
# =============================================================================

SEARCH_HISTORY_LIMIT = int(os.getenv("SEARCH_HISTORY_LIMIT", "10"))
SUGGESTION_LIMIT = int(os.getenv("SUGGESTION_LIMIT", "10"))

# =============================================================================
# SYSTEM SETTINGS
# =============================================================================

VERBOSE = _env_flag("VERBOSE", "false")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


# =============================================================================
# ASSISTANT PROMPT
# =============================================================================

ASSISTANT_NAME = os.getenv("ASSISTANT_NAME", "Vincent E Neu")

ASSISTANT_PROMPT = """You are {assistant_name}, a study assistant specialised in the university exam and answer-key archive.

Answer in Vietnamese, briefly and precisely. When asked about an exam, give useful information based on your knowledge.

Context: {context}

User question: {message}"""

DOCUMENT_CONTEXT = """The user is looking up: {name}.
Document content: {content}"""
