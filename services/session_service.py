# services/session_service.py
import logging
from typing import List, Optional

from config import settings
from core.domain import ChatSession
from core.exceptions import InvalidArgumentError, NotFoundError
from core.interfaces import ISessionRepository
from utils.common import is_blank

logger = logging.getLogger(settings.LOGGER_NAME)


def normalize_title(title: Optional[str], required: bool = False) -> str:
    """Trimmed session title; falls back to the default title when optional and absent."""
    if title is None and not required:
        return settings.DEFAULT_SESSION_TITLE
    if not isinstance(title, str) or not title.strip():
        raise InvalidArgumentError("Title must be a non-empty string")
    if len(title) > settings.SESSION_TITLE_MAX_LENGTH:
        raise InvalidArgumentError(
            f"Title must be at most {settings.SESSION_TITLE_MAX_LENGTH} characters"
        )
    return title.strip()


class SessionService:
    """Chat session lifecycle for one user at a time."""

    def __init__(self, session_repo: ISessionRepository):
        self.session_repo = session_repo

    async def _get_owned(self, user_id: str, session_id: str) -> ChatSession:
        if is_blank(user_id) or is_blank(session_id):
            raise InvalidArgumentError("User ID and Session ID are required")
        session = await self.session_repo.get_by_id(session_id)
        # A session of another user is reported as missing
        if session is None or session.user_id != user_id:
            raise NotFoundError("Session not found")
        return session

    async def create_session(self, user_id: str, title: Optional[str] = None) -> ChatSession:
        if is_blank(user_id):
            raise InvalidArgumentError("User ID is required")
        session = await self.session_repo.create(user_id, normalize_title(title))
        logger.info(f"Session {session.id} created for user {user_id}")
        return session

    async def rename_session(self, user_id: str, session_id: str, title: str) -> ChatSession:
        new_title = normalize_title(title, required=True)
        await self._get_owned(user_id, session_id)
        updated = await self.session_repo.update(session_id, title=new_title)
        if updated is None:
            raise NotFoundError("Session not found")
        return updated

    async def delete_session(self, user_id: str, session_id: str) -> None:
        await self._get_owned(user_id, session_id)
        await self.session_repo.delete(session_id)
        logger.info(f"Session {session_id} deleted by user {user_id}")

    async def toggle_favorite(self, user_id: str, session_id: str) -> ChatSession:
        session = await self._get_owned(user_id, session_id)
        updated = await self.session_repo.update(session_id, favorite=not session.favorite)
        if updated is None:
            raise NotFoundError("Session not found")
        return updated

    async def get_recent_sessions(self, user_id: str) -> List[ChatSession]:
        if is_blank(user_id):
            raise InvalidArgumentError("User ID is required")
        return await self.session_repo.list_by_user(user_id)
