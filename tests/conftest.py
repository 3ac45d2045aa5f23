"""
Conftest for ExamNotebook tests.

Ensures the project root is on sys.path so that 'examnotebook' and
'configs' resolve, points data files at a throwaway directory, and
provides a scripted transport so no test touches the network.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Union

import pytest

# Add project root to sys.path
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Set environment BEFORE any configs import
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="examnotebook-tests-"))
os.environ.setdefault("LLM_TRANSPORT", "rest")

from examnotebook.llm import (  # noqa: E402
    GenerationRequest,
    Transport,
    TransportError,
    TransportResponse,
)
from examnotebook.models import Document  # noqa: E402


Outcome = Union[TransportResponse, Exception]


class FakeTransport(Transport):
    """Replies per API key with a scripted TransportResponse or exception."""

    def __init__(self, outcomes: Dict[str, Outcome]):
        self.outcomes = outcomes
        self.calls: List[str] = []
        self.requests: List[GenerationRequest] = []

    def send(self, request: GenerationRequest, api_key: str) -> TransportResponse:
        self.calls.append(api_key)
        self.requests.append(request)
        outcome = self.outcomes[api_key]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def ok(text: str = "Xin chào!") -> TransportResponse:
    return TransportResponse(status_code=200, text=text, usage={"totalTokenCount": 12})


def rate_limited(message: str = "Resource has been exhausted (e.g. check quota).") -> TransportResponse:
    return TransportResponse(status_code=429, error_message=message)


def server_error(message: str = "Internal error encountered.") -> TransportResponse:
    return TransportResponse(status_code=500, error_message=message)


def malformed() -> TransportResponse:
    return TransportResponse(status_code=200, text=None)


def unreachable() -> TransportError:
    return TransportError("connection refused")


@pytest.fixture
def documents() -> List[Document]:
    return [
        Document.model_validate({
            "name": "de_toan_2023.pdf",
            "content": "Đề thi cuối kỳ giải tích tích phân",
            "subject": "toanHoc",
            "type": "pdf",
            "uploadDate": "2023-06-15T08:00:00",
            "metadata": {"examInfo": {"examType": "final", "year": 2023}},
        }),
        Document.model_validate({
            "name": "de_van_2022.pdf",
            "content": "Phân tích tác phẩm văn học hiện đại",
            "subject": "vanHoc",
            "type": "pdf",
            "uploadDate": "2022-11-02T10:30:00",
            "metadata": {"examInfo": {"examType": "midterm", "year": 2022}},
        }),
        Document.model_validate({
            "name": "english_quiz.docx",
            "content": "Reading comprehension and grammar",
            "subject": "tiengAnh",
            "type": "docx",
            "metadata": {"examInfo": {"examType": "quiz", "year": "2024"}},
        }),
    ]
