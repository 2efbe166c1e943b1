"""Example retrieval for few-shot prompting."""

from .tfidf import TfidfIndex, cosine_similarity, tokenize

__all__ = ["TfidfIndex", "cosine_similarity", "tokenize"]
