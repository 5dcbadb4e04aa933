"""Command-line tools for the knowledge service.

- ``python -m knowledge_rag.cli`` — upload files, analyze repositories,
  list tags, and ask questions against a tag.
"""
