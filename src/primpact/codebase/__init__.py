"""Codebase indexing and context retrieval."""

from primpact.codebase.indexer import CodebaseIndexer, get_or_build_index, load_codebase_index
from primpact.codebase.models import CodebaseIndex, ModuleInfo
from primpact.codebase.retriever import find_module, retrieve_context

__all__ = [
    "CodebaseIndex",
    "CodebaseIndexer",
    "ModuleInfo",
    "find_module",
    "get_or_build_index",
    "load_codebase_index",
    "retrieve_context",
]
