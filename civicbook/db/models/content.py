"""
Book structure rows the element engine resolves against.

Only the columns the engine needs: sections carry their markup, chapters tie
sections to a book, and discussion topics back {{topic:N}} cards. The rest of
the book domain lives elsewhere.
"""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Book(Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    chapters: Mapped[List["Chapter"]] = relationship(back_populates="book")

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title[:40]}')>"


class Chapter(Base):
    __tablename__ = "chapters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    book_id: Mapped[int] = mapped_column(ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    number: Mapped[int] = mapped_column(Integer, default=1)
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    book: Mapped["Book"] = relationship(back_populates="chapters")
    sections: Mapped[List["Section"]] = relationship(back_populates="chapter")

    def __repr__(self) -> str:
        return f"<Chapter(id={self.id}, book_id={self.book_id}, number={self.number})>"


class Section(Base):
    __tablename__ = "sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    chapter_id: Mapped[int] = mapped_column(
        ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    number: Mapped[int] = mapped_column(Integer, default=1)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="")

    chapter: Mapped["Chapter"] = relationship(back_populates="sections")

    def __repr__(self) -> str:
        return f"<Section(id={self.id}, chapter_id={self.chapter_id}, title='{self.title[:40]}')>"


class DiscussionTopic(Base):
    __tablename__ = "discussion_topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    section_id: Mapped[Optional[int]] = mapped_column(ForeignKey("sections.id", ondelete="SET NULL"))

    def __repr__(self) -> str:
        return f"<DiscussionTopic(id={self.id}, title='{self.title[:40]}')>"
