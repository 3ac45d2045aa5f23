"""HTTP API for ExamNotebook."""
