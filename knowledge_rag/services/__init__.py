"""Core services: ingestion, tag registry, retrieval, generation and repository analysis."""
