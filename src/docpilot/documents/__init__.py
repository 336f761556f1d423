"""Line-addressable document model."""

from .model import Document, DocumentFormat, DocumentMetadata, Line

__all__ = ["Document", "DocumentFormat", "DocumentMetadata", "Line"]
