"""
ExamNotebook Package

Study-assistant core:
- llm: Gemini client with API-key rotation and fallback
- search: inverted-index search and filtering over exam documents
- store: JSON persistence for keys and documents
- api: FastAPI surface over both
"""

__version__ = "1.0.0"
