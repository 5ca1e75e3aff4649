"""
SQLAlchemy ORM models for users, content and watch history.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGSERIAL on Postgres, rowid alias on SQLite so ids still autoincrement there
BigIntId = BigInteger().with_variant(Integer, "sqlite")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    country: Mapped[str] = mapped_column(String(2), nullable=False)
    subscription_type: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("age > 0", name="check_users_age"),
        Index("idx_users_country", "country"),
        Index("idx_users_subscription", "subscription_type"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, country='{self.country}', subscription_type='{self.subscription_type}')>"


class Content(Base):
    __tablename__ = "content"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    genre: Mapped[str] = mapped_column(String(50), nullable=False)
    popularity_score: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("popularity_score >= 0", name="check_content_popularity"),
        Index("idx_content_genre", "genre"),
    )

    def __repr__(self) -> str:
        return f"<Content(id={self.id}, title='{self.title}', genre='{self.genre}')>"


class WatchHistory(Base):
    __tablename__ = "user_watch_history"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("content.id", ondelete="CASCADE"), nullable=False
    )
    watched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_watch_history_user", "user_id"),
        Index("idx_watch_history_content", "content_id"),
    )

    def __repr__(self) -> str:
        return f"<WatchHistory(user_id={self.user_id}, content_id={self.content_id})>"


Index("idx_content_popularity", Content.popularity_score.desc())
Index("idx_watch_history_composite", WatchHistory.user_id, WatchHistory.watched_at.desc())
