"""CLI tests: argument handling for the search command."""

import pytest

import cli
from examnotebook.search import SearchHistory
from examnotebook.store import DocumentStore


@pytest.fixture
def data_files(tmp_path, monkeypatch, documents):
    store = DocumentStore(tmp_path / "documents.json")
    store.save(documents)
    history = SearchHistory(tmp_path / "history.json")
    monkeypatch.setattr(cli, "DocumentStore", lambda: store)
    monkeypatch.setattr(cli, "SearchHistory", lambda: history)
    return history


@pytest.mark.parametrize("flag", ["--from", "--to"])
def test_search_rejects_non_iso_date(data_files, flag):
    assert cli.main(["search", "toan", flag, "15/06/2023"]) == 1
    assert data_files.entries() == []


def test_search_with_date_range(data_files):
    assert cli.main(["search", "toan", "--from", "2023-01-01", "--to", "2023-12-31"]) == 0
    assert data_files.entries() == ["toan"]
