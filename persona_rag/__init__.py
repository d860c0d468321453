"""Persona RAG: a retrieval-augmented chat backend that answers in one persona."""

__version__ = "0.1.0"
