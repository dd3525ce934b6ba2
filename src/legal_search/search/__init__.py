"""
Search indexing and query engine package.

This package provides a pure-Python search stack:
- analyzers: Mixed Chinese/English tokenizer, filters and stemmer
- stats: corpus term statistics and BM25-style weighting
- enrichment: keywords, summary, sentiment, entities, category, language
- storage / sqlite_storage: in-memory and SQLite index stores
- search_index: store plus statistics kept in step
- indexer: document indexing pipeline
- query: filtering, scoring, sorting, pagination and facets
- suggestions: prefix completions
"""
