# services/rag_chain.py
"""
Retrieval-augmented generation.

Per request: retrieve -> compose -> generate, and if generation fails,
one fallback call straight to the LLM on the bare question. When the
fallback fails too, GenerationFailure is raised from the *primary* error.
"""
import logging
from contextlib import aclosing
from typing import AsyncIterator, Callable, List, Optional, Sequence

from config import settings
from core.domain import Document
from core.exceptions import BackendError, GenerationFailure, InvalidArgumentError
from core.interfaces import ILLMService
from services.vector_store_adapter import VectorStoreAdapter

logger = logging.getLogger(settings.LOGGER_NAME)

RAG_PROMPT_TEMPLATE = """You are a helpful AI assistant. Answer the user's question using only the following pieces of context.
If the context is not sufficient to answer, just say "I don't know", don't try to make up an answer.

Context:
{context}

Question: {question}

Answer:"""

CONTEXT_SEPARATOR = "\n\n"


class RAGChain:
    """Answers questions from retrieved documents, with and without streaming."""

    def __init__(
        self,
        vector_store: VectorStoreAdapter,
        llm: ILLMService,
        top_k: int = settings.RAG_TOP_K
    ):
        self.vector_store = vector_store
        self.llm = llm
        self.top_k = top_k

    @property
    def model(self) -> str:
        return self.llm.model

    @staticmethod
    def build_context(documents: Sequence[Document]) -> str:
        return CONTEXT_SEPARATOR.join(doc.content for doc in documents)

    @staticmethod
    def build_prompt(question: str, context: str) -> str:
        return RAG_PROMPT_TEMPLATE.format(context=context, question=question)

    async def get_relevant_documents(self, query: str, k: Optional[int] = None) -> List[Document]:
        """Retrieval only, for callers that do not need generation."""
        try:
            return await self.vector_store.similarity_search(query, k or self.top_k)
        except BackendError as e:
            logger.error(f"Failed to get relevant documents: {e}")
            raise

    async def _generate_primary(self, question: str) -> str:
        documents = await self.get_relevant_documents(question)
        if not documents:
            logger.warning("No relevant documents found. Using LLM without RAG context.")
            return await self.llm.complete(question)

        prompt = self.build_prompt(question, self.build_context(documents))
        return await self.llm.complete(prompt)

    async def generate(self, question: str, on_fallback: Optional[Callable[[], None]] = None) -> str:
        """
        Whole-response generation.

        on_fallback is called once if the answer comes from the fallback call.

        Raises:
            InvalidArgumentError: If the question is empty
            GenerationFailure: If the primary and the fallback call both fail
        """
        _validate_question(question)
        logger.info(f"Generating RAG response for question: {question[:80]}")

        try:
            return await self._generate_primary(question)
        except BackendError as primary_error:
            logger.error(f"Failed to generate RAG response: {primary_error}")
            if on_fallback:
                on_fallback()
            try:
                return await self.llm.complete(question)
            except BackendError as fallback_error:
                logger.error(f"Fallback LLM response also failed: {fallback_error}")
                raise GenerationFailure(
                    f"Response generation failed: {primary_error.message}"
                ) from primary_error

    async def _stream_primary(self, question: str) -> AsyncIterator[str]:
        # Context is composed even when retrieval comes back empty
        documents = await self.get_relevant_documents(question)
        prompt = self.build_prompt(question, self.build_context(documents))
        async with aclosing(self.llm.stream(prompt)) as fragments:
            async for fragment in fragments:
                if fragment:
                    yield fragment

    async def stream(self, question: str, on_fallback: Optional[Callable[[], None]] = None) -> AsyncIterator[str]:
        """
        Streaming generation: yields text fragments in arrival order.

        A failure before the first fragment switches to the fallback stream
        on the bare question; a failure after fragments went out propagates
        unchanged, since the caller already holds a partial answer.
        on_fallback is called once when the fallback stream takes over.
        """
        _validate_question(question)
        logger.info(f"Generating streaming RAG response for question: {question[:80]}")

        emitted = False
        primary_error: Optional[BackendError] = None
        try:
            async with aclosing(self._stream_primary(question)) as fragments:
                async for fragment in fragments:
                    emitted = True
                    yield fragment
        except BackendError as e:
            if emitted:
                logger.error(f"Streaming RAG response failed mid-stream: {e}")
                raise
            primary_error = e

        if primary_error is None:
            return

        logger.error(f"Failed to generate streaming RAG response: {primary_error}")
        if on_fallback:
            on_fallback()
        try:
            async with aclosing(self.llm.stream(question)) as fragments:
                async for fragment in fragments:
                    if fragment:
                        yield fragment
        except BackendError as fallback_error:
            logger.error(f"Fallback LLM stream also failed: {fallback_error}")
            raise GenerationFailure(
                f"Response generation failed: {primary_error.message}"
            ) from primary_error

    async def generate_streaming(self, question: str, on_chunk: Callable[[str], None]) -> str:
        """Forward every fragment to on_chunk and return the concatenated answer."""
        parts: List[str] = []
        async with aclosing(self.stream(question)) as fragments:
            async for fragment in fragments:
                on_chunk(fragment)
                parts.append(fragment)
        return "".join(parts)


def _validate_question(question: str) -> None:
    if not isinstance(question, str) or not question.strip():
        raise InvalidArgumentError("Question cannot be empty")
