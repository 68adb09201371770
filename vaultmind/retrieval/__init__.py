"""Keyword indexing and embedding reranking."""

from vaultmind.retrieval.lexical_index import LexicalIndex
from vaultmind.retrieval.reranker import EmbeddingReranker, cosine_similarity
from vaultmind.retrieval.segmenter import CJKSegmenter, NoOpSegmenter
from vaultmind.retrieval.tokenizer import Tokenizer

__all__ = [
    "CJKSegmenter",
    "EmbeddingReranker",
    "LexicalIndex",
    "NoOpSegmenter",
    "Tokenizer",
    "cosine_similarity",
]
