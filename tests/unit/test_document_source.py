"""Unit tests for document source adapters."""

import pytest

from legal_search.adapters import StaticDocumentSource


@pytest.mark.asyncio
async def test_static_source_lists_its_documents(make_document) -> None:
    documents = [make_document("a"), make_document("b")]
    source = StaticDocumentSource(documents, name="documents")

    listed = await source.list_active_documents()

    assert source.name == "documents"
    assert [document.id for document in listed] == ["a", "b"]


@pytest.mark.asyncio
async def test_static_source_can_be_streamed(make_document) -> None:
    source = StaticDocumentSource([make_document("a")])

    assert [document.id async for document in source.iter_active_documents()] == ["a"]
