# services/message_service.py
"""
Chat message orchestration.

Every operation first checks that the session exists and belongs to the
caller. User messages trigger an assistant reply: through the RAG chain
when RAG is enabled, otherwise through a plain LLM call over the recent
conversation window. The non-streaming reply is best effort, the streaming
one reports its failures to the caller.
"""
import asyncio
import logging
from contextlib import aclosing
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Sequence, Tuple

from config import settings
from core.domain import GENERATED, MODEL, RAG_ENABLED, ChatMessage, ChatSession, validate_metadata
from core.enums import MessageRole
from core.exceptions import ForbiddenError, InvalidArgumentError, NotFoundError
from core.interfaces import ILLMService, IMessageRepository, ISessionRepository
from services.rag_chain import RAGChain
from utils.common import is_blank

logger = logging.getLogger(settings.LOGGER_NAME)

TIMESTAMP = "timestamp"


def build_conversation_prompt(history: Sequence[ChatMessage]) -> str:
    """Prompt for the plain (non-RAG) reply, built from the recent message window."""
    lines = "\n".join(f"{msg.role.value}: {msg.content}" for msg in history)
    return f"Previous conversation:\n{lines}\n\nPlease respond to the latest user message."


class MessageService:
    def __init__(
        self,
        session_repo: ISessionRepository,
        message_repo: IMessageRepository,
        rag_chain: RAGChain,
        llm: ILLMService,
        rag_enabled: bool = settings.RAG_ENABLED,
        context_limit: int = settings.CHAT_CONTEXT_LIMIT
    ):
        self.session_repo = session_repo
        self.message_repo = message_repo
        self.rag_chain = rag_chain
        self.llm = llm
        self.rag_enabled = rag_enabled
        self.context_limit = context_limit

    async def _assert_owned_session(self, user_id: str, session_id: str) -> ChatSession:
        if is_blank(session_id):
            raise InvalidArgumentError("Session ID is required")
        session = await self.session_repo.get_by_id(session_id)
        if session is None:
            raise NotFoundError("Chat session not found")
        if session.user_id != user_id:
            raise ForbiddenError("Access denied to this chat session")
        return session

    def _reply_metadata(self, rag_enabled: bool) -> Dict[str, Any]:
        return {
            GENERATED: True,
            MODEL: self.llm.model,
            RAG_ENABLED: rag_enabled,
            TIMESTAMP: datetime.now(timezone.utc).isoformat(),
        }

    async def _generate_reply(self, session_id: str, content: str) -> Tuple[str, bool]:
        """Reply text, and whether retrieved context went into it."""
        if self.rag_enabled:
            fallbacks: List[bool] = []
            reply = await self.rag_chain.generate(content, on_fallback=lambda: fallbacks.append(True))
            return reply, not fallbacks

        # Snapshot taken after the user message was stored, so it is the last entry
        history = await self.message_repo.list_by_session(session_id, limit=self.context_limit)
        return await self.llm.complete(build_conversation_prompt(history)), False

    async def create_message(
        self,
        user_id: str,
        session_id: str,
        role: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ChatMessage:
        """
        Store a message and, for user messages, a generated assistant reply.

        Returns the stored incoming message; the reply is available through
        list_messages. Reply generation failures are logged and swallowed.
        """
        await self._assert_owned_session(user_id, session_id)
        try:
            message_role = MessageRole(role)
        except ValueError:
            raise InvalidArgumentError("Role must be 'user' or 'assistant'")
        if is_blank(content):
            raise InvalidArgumentError("Message content cannot be empty")

        message = await self.message_repo.create(
            session_id, message_role, content, validate_metadata(metadata)
        )

        if message_role is MessageRole.USER:
            try:
                reply, rag_used = await self._generate_reply(session_id, content)
                await self.message_repo.create(
                    session_id,
                    MessageRole.ASSISTANT,
                    reply,
                    self._reply_metadata(rag_used)
                )
                logger.info(f"Stored assistant reply for session {session_id}")
            except Exception:
                logger.exception(f"Failed to generate assistant reply for session {session_id}")

        return message

    async def list_messages(self, user_id: str, session_id: str) -> List[ChatMessage]:
        await self._assert_owned_session(user_id, session_id)
        return await self.message_repo.list_by_session(session_id)

    async def get_chat_history(self, user_id: str, session_id: str) -> List[Dict[str, Any]]:
        messages = await self.list_messages(user_id, session_id)
        return [
            {"role": msg.role.value, "content": msg.content, "timestamp": msg.created_at}
            for msg in messages
        ]

    async def stream_response(self, user_id: str, session_id: str, question: str) -> AsyncGenerator[str, None]:
        """
        Check ownership and store the question, then hand back the reply stream.

        The checks run eagerly so that callers can report them before they
        start sending a response. The returned iterator yields fragments in
        arrival order and stores the assistant reply only once it has been
        fully consumed; a stream that is closed or cancelled early stores
        nothing.
        """
        await self._assert_owned_session(user_id, session_id)
        if is_blank(question):
            raise InvalidArgumentError("Question cannot be empty")

        await self.message_repo.create(session_id, MessageRole.USER, question, {})
        return self._stream_and_persist(session_id, question)

    async def _stream_and_persist(self, session_id: str, question: str) -> AsyncGenerator[str, None]:
        logger.info(f"Streaming reply for session {session_id}")
        parts: List[str] = []
        fallbacks: List[bool] = []
        chain_stream = self.rag_chain.stream(question, on_fallback=lambda: fallbacks.append(True))
        try:
            async with aclosing(chain_stream) as fragments:
                async for fragment in fragments:
                    parts.append(fragment)
                    yield fragment
        except (asyncio.CancelledError, GeneratorExit):
            logger.warning(
                f"Stream for session {session_id} cancelled after {len(parts)} fragment(s); reply not stored"
            )
            raise

        answer = "".join(parts)
        await self.message_repo.create(
            session_id, MessageRole.ASSISTANT, answer, self._reply_metadata(not fallbacks)
        )
        logger.info(f"Stream for session {session_id} finished ({len(answer)} characters)")

    async def generate_streaming_response(
        self,
        user_id: str,
        session_id: str,
        question: str,
        on_chunk: Callable[[str], None]
    ) -> None:
        """Callback flavour of stream_response: every fragment goes to on_chunk."""
        stream = await self.stream_response(user_id, session_id, question)
        async with aclosing(stream) as fragments:
            async for fragment in fragments:
                on_chunk(fragment)
