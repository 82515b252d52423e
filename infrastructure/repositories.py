"""Database repository implementations"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from core.domain import ChatMessage, ChatSession
from core.enums import MessageRole
from core.interfaces import IMessageRepository, ISessionRepository
from database.session import ChatMessageEntity, ChatSessionEntity

logger = logging.getLogger(settings.LOGGER_NAME)

_UPDATABLE_SESSION_FIELDS = {"title", "favorite", "metadata"}


class SQLSessionRepository(ISessionRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_domain(self, db_session: Optional[ChatSessionEntity]) -> Optional[ChatSession]:
        """Converts an SQLAlchemy entity to a domain model."""
        if db_session is None:
            return None
        return ChatSession(
            id=db_session.id,  # type: ignore
            user_id=db_session.user_id,  # type: ignore
            title=db_session.title,  # type: ignore
            favorite=bool(db_session.favorite),
            metadata=dict(db_session.meta or {}),
            created_at=db_session.created_at,  # type: ignore
            updated_at=db_session.updated_at  # type: ignore
        )

    async def create(self, user_id: str, title: str) -> ChatSession:
        db_session = ChatSessionEntity(user_id=user_id, title=title, favorite=False, meta={})
        self.session.add(db_session)
        await self.session.commit()
        await self.session.refresh(db_session)
        logger.info(f"Created session {db_session.id} for user {user_id}")

        result = self._to_domain(db_session)
        assert result is not None, "Created session should never be None"
        return result

    async def get_by_id(self, session_id: str) -> Optional[ChatSession]:
        db_session = await self.session.get(ChatSessionEntity, session_id)
        return self._to_domain(db_session)

    async def list_by_user(self, user_id: str) -> List[ChatSession]:
        result = await self.session.execute(
            select(ChatSessionEntity)
            .where(ChatSessionEntity.user_id == user_id)
            .order_by(ChatSessionEntity.created_at.desc())
        )
        sessions = [self._to_domain(s) for s in result.scalars().all()]
        return [s for s in sessions if s is not None]

    async def update(self, session_id: str, **changes: Any) -> Optional[ChatSession]:
        unknown = set(changes) - _UPDATABLE_SESSION_FIELDS
        if unknown:
            raise ValueError(f"Cannot update session field(s): {', '.join(sorted(unknown))}")

        db_session = await self.session.get(ChatSessionEntity, session_id)
        if not db_session:
            return None
        if "title" in changes:
            db_session.title = changes["title"]
        if "favorite" in changes:
            db_session.favorite = bool(changes["favorite"])
        if "metadata" in changes:
            db_session.meta = dict(changes["metadata"] or {})
        await self.session.commit()
        await self.session.refresh(db_session)
        return self._to_domain(db_session)

    async def delete(self, session_id: str) -> bool:
        db_session = await self.session.get(ChatSessionEntity, session_id)
        if not db_session:
            return False
        await self.session.delete(db_session)
        await self.session.commit()
        logger.info(f"Deleted session {session_id}")
        return True


class SQLMessageRepository(IMessageRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_domain(self, msg: ChatMessageEntity) -> ChatMessage:
        return ChatMessage(
            id=msg.id,  # type: ignore
            session_id=msg.session_id,  # type: ignore
            role=MessageRole(msg.role),
            content=msg.content,  # type: ignore
            metadata=dict(msg.meta or {}),
            created_at=msg.created_at  # type: ignore
        )

    async def create(
        self,
        session_id: str,
        role: MessageRole,
        content: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ChatMessage:
        message = ChatMessageEntity(
            session_id=session_id,
            role=MessageRole(role).value,
            content=content,
            meta=dict(metadata or {})
        )
        self.session.add(message)
        await self.session.commit()
        await self.session.refresh(message)
        return self._to_domain(message)

    async def list_by_session(self, session_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        """Oldest first; with a limit, the most recent `limit` messages."""
        if limit is None:
            result = await self.session.execute(
                select(ChatMessageEntity)
                .where(ChatMessageEntity.session_id == session_id)
                .order_by(ChatMessageEntity.created_at.asc())
            )
            return [self._to_domain(m) for m in result.scalars().all()]

        result = await self.session.execute(
            select(ChatMessageEntity)
            .where(ChatMessageEntity.session_id == session_id)
            .order_by(ChatMessageEntity.created_at.desc())
            .limit(limit)
        )
        recent = [self._to_domain(m) for m in result.scalars().all()]
        recent.reverse()
        return recent
