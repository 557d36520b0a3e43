"""Tests for DocumentRepository."""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from sopgate.core.errors import NotFoundError
from sopgate.services.documents import DocumentRepository
from tests.factories import create_document


@pytest.fixture
def documents(db_session):
    return DocumentRepository(db_session)


def test_create_sets_timestamps(documents):
    document = documents.create(file_name="a.pdf", file_path="/a.pdf", file_size=10, version="v1.0")

    assert document.id is not None
    assert document.created_at == document.modified_at


def test_find_by_id_missing(documents):
    with pytest.raises(NotFoundError) as exc_info:
        documents.find_by_id(uuid4())
    assert exc_info.value.resource == "Document"


def test_update_bumps_modified_at(db_session, documents):
    document = create_document(db_session, brand="acme")
    document.modified_at = datetime.utcnow() - timedelta(days=1)
    before = document.modified_at

    documents.update(document, {"brand": "globex"})

    assert document.brand == "globex"
    assert document.modified_at > before


def test_update_unknown_attribute(db_session, documents):
    document = create_document(db_session)

    with pytest.raises(ValueError):
        documents.update(document, {"colour": "red"})


def test_list_filters(db_session, documents):
    create_document(db_session, brand="acme", category="safety")
    create_document(db_session, brand="acme", category="ops")
    create_document(db_session, brand="globex", category="safety")

    assert len(documents.list()) == 3
    assert len(documents.list(brand="acme")) == 2
    assert len(documents.list(brand="acme", category="ops")) == 1


def test_snapshot_uses_api_names(db_session):
    document = create_document(db_session, file_name="x.pdf", brand="acme")

    snapshot = DocumentRepository.snapshot(document)

    assert snapshot["id"] == str(document.id)
    assert snapshot["fileName"] == "x.pdf"
    assert snapshot["brand"] == "acme"
    assert set(snapshot) == {
        "id", "fileName", "filePath", "fileSize", "category", "brand", "uploadedBy", "version"
    }
