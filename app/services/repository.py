from loguru import logger
from sqlalchemy import and_, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import ContentNotFoundError, RepositoryError, UserNotFoundError
from app.db.models import Content, User, WatchHistory
from app.models.recommendation import CandidateContent, UserProfile, WatchHistoryItem


class Repository:
    """
    Async data access for users, content and watch history.

    Each call opens its own short-lived session, so concurrent callers never
    share one. Driver failures surface as RepositoryError.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_user(self, user_id: int) -> UserProfile:
        try:
            async with self._session_factory() as session:
                user = await session.get(User, user_id)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"query user id={user_id}: {exc}") from exc

        if user is None:
            raise UserNotFoundError(user_id)
        return UserProfile.model_validate(user)

    async def get_recent_watch_history(self, user_id: int, cap: int) -> list[WatchHistoryItem]:
        """Most recent `cap` watch events for a user joined with the content genre, newest first."""
        stmt = (
            select(Content.id, Content.genre, WatchHistory.watched_at)
            .join(Content, WatchHistory.content_id == Content.id)
            .where(WatchHistory.user_id == user_id)
            .order_by(WatchHistory.watched_at.desc(), WatchHistory.id.desc())
            .limit(cap)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"get watch history for user {user_id}: {exc}") from exc

        return [WatchHistoryItem(content_id=row.id, genre=row.genre, watched_at=row.watched_at) for row in rows]

    async def get_unwatched_candidates(self, user_id: int, cap: int) -> list[CandidateContent]:
        """Content the user has never watched, most popular first."""
        stmt = (
            select(Content)
            .outerjoin(
                WatchHistory,
                and_(WatchHistory.content_id == Content.id, WatchHistory.user_id == user_id),
            )
            .where(WatchHistory.id.is_(None))
            .order_by(Content.popularity_score.desc(), Content.id)
            .limit(cap)
        )
        try:
            async with self._session_factory() as session:
                items = (await session.scalars(stmt)).all()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"query unwatched content for user {user_id}: {exc}") from exc

        return [CandidateContent.model_validate(item) for item in items]

    async def get_user_ids_page(self, page: int, limit: int) -> list[int]:
        offset = (page - 1) * limit
        stmt = select(User.id).order_by(User.id).limit(limit).offset(offset)
        try:
            async with self._session_factory() as session:
                return list((await session.scalars(stmt)).all())
        except SQLAlchemyError as exc:
            raise RepositoryError(f"query user ids for page {page}: {exc}") from exc

    async def count_users(self) -> int:
        try:
            async with self._session_factory() as session:
                total = await session.scalar(select(func.count()).select_from(User))
        except SQLAlchemyError as exc:
            raise RepositoryError(f"count users: {exc}") from exc
        return int(total or 0)

    async def append_watch_history(self, user_id: int, content_id: int) -> None:
        """Record that a user watched a content item."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    if await session.get(User, user_id) is None:
                        raise UserNotFoundError(user_id)
                    if await session.get(Content, content_id) is None:
                        raise ContentNotFoundError(content_id)
                    session.add(WatchHistory(user_id=user_id, content_id=content_id))
        except SQLAlchemyError as exc:
            raise RepositoryError(f"add watch history for user {user_id}: {exc}") from exc
        logger.debug(f"Recorded watch of content {content_id} by user {user_id}")

    async def ping(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.warning(f"Database ping failed: {exc}")
            return False
