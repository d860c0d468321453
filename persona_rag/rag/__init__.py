"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document chunking with overlap
- Embedding generation
- Vector storage (in-memory and FAISS)
- Semantic retrieval
- Persona response generation
"""
