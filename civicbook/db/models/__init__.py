# SQLAlchemy models
from .base import Base
from .content import Book, Chapter, DiscussionTopic, Section
from .elements import ElementResponse, InteractiveElement, UserBookProgress

__all__ = [
    "Base",
    "Book",
    "Chapter",
    "DiscussionTopic",
    "ElementResponse",
    "InteractiveElement",
    "Section",
    "UserBookProgress",
]
