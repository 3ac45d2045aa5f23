"""Config module initialization."""
from .settings import (
    # Key configuration
    get_gemini_keys,
    get_gemini_key_count,
    # LLM configuration
    LLM_TRANSPORT,
    GEMINI_MODEL,
    GEMINI_BASE_URL,
    TEMPERATURE,
    TOP_K,
    TOP_P,
    MAX_OUTPUT_TOKENS,
    SAFETY_THRESHOLD,
    SAFETY_CATEGORIES,
    FALLBACK_ENABLED,
    REQUEST_TIMEOUT_SECONDS,
    ASSISTANT_NAME,
    ASSISTANT_PROMPT,
    DOCUMENT_CONTEXT,
    # Storage
    DATA_DIR,
    KEYRING_STATE_PATH,
    DOCUMENTS_PATH,
    SEARCH_HISTORY_PATH,
    # Search
    SEARCH_HISTORY_LIMIT,
    SUGGESTION_LIMIT,
    # System
    VERBOSE,
    LOG_LEVEL,
    # Validation
    ConfigurationError,
    validate_configuration,
)

__all__ = [
    # Key configuration
    "get_gemini_keys",
    "get_gemini_key_count",
    # LLM configuration
    "LLM_TRANSPORT",
    "GEMINI_MODEL",
    "GEMINI_BASE_URL",
    "TEMPERATURE",
    "TOP_K",
    "TOP_P",
    "MAX_OUTPUT_TOKENS",
    "SAFETY_THRESHOLD",
    "SAFETY_CATEGORIES",
    "FALLBACK_ENABLED",
    "REQUEST_TIMEOUT_SECONDS",
    "ASSISTANT_NAME",
    "ASSISTANT_PROMPT",
    "DOCUMENT_CONTEXT",
    # Storage
    "DATA_DIR",
    "KEYRING_STATE_PATH",
    "DOCUMENTS_PATH",
    "SEARCH_HISTORY_PATH",
    # Search
    "SEARCH_HISTORY_LIMIT",
    "SUGGESTION_LIMIT",
    # System
    "VERBOSE",
    "LOG_LEVEL",
    # Validation
    "ConfigurationError",
    "validate_configuration",
]
