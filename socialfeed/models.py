from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Index, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column

from socialfeed.database import Base

# Identifiers are ULID strings: unique, and lexicographic order is creation
# order, so ``ORDER BY id DESC`` is reverse chronological.
ID_LENGTH = 26

# ---------------------------------------------------------------------------
# Association table: User <-> Post likes (many-to-many, no own identity)
# ---------------------------------------------------------------------------
user_likes_post = Table(
    "user_likes_post",
    Base.metadata,
    Column("user_id", String(ID_LENGTH), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("post_id", String(ID_LENGTH), ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True),
    Index("ix_user_likes_post_post_id", "post_id"),
)


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    # bcrypt digest; never serialised.
    password: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(150), nullable=False)


# ---------------------------------------------------------------------------
# Post
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    __table_args__ = (
        # Caller's own feed: WHERE author_id = ? ORDER BY id DESC
        Index("ix_posts_author_id_id", "author_id", "id"),
    )

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    author_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
