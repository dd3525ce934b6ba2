"""Adapters layer - sources of the documents projected into the index."""

from .document_source import AbstractDocumentSource, StaticDocumentSource


__all__ = [
    "AbstractDocumentSource",
    "StaticDocumentSource",
]
