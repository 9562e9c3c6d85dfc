"""Rerankers that reorder retrieved units: cross-encoder scoring and lost-in-the-middle ordering."""