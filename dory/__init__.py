"""Retrieval building blocks: units, contracts, vector stores, retrievers and rerankers."""

__version__ = "0.1.0"