"""Normalized in-memory gallery records."""

from .gallery import Category, ImageRecord, ImageTag, PromptBlock, Snapshot, Tag

__all__ = ['Category', 'ImageRecord', 'ImageTag', 'PromptBlock', 'Snapshot', 'Tag']
