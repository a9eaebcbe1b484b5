"""
Package: transform
Description: Per-destination payload transformation (field mapping, actor enrichment).
"""

from .payload import ActorDirectory, PayloadTransformer, TransformResult

__all__ = ["ActorDirectory", "PayloadTransformer", "TransformResult"]
