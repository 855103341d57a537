"""Editor collaborators: the document buffer and line highlighters."""

from . import document_model

__all__ = ["document_model"]
