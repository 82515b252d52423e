# config.py
"""Application configuration"""
from typing import Optional
from pydantic_settings import BaseSettings
from utils.common import get_log_file_path

class Settings(BaseSettings):
    """
    Loads configuration from environment variables.
    Create a .env file in the root directory to set these values.
    """

    # Logger configuration
    LOGGER_NAME: str = "chat_rag"
    LOG_LEVEL: str = "INFO"
    LOG_FILE_PATH: str = get_log_file_path()

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./chat.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 3600  # Recycle connections after 1 hour

    # Vector store ("chromadb", "faiss" or "none")
    VECTOR_STORE_TYPE: str = "chromadb"
    VECTOR_DB_PATH: Optional[str] = "./vector_db"
    CHROMA_HOST: Optional[str] = None
    CHROMA_PORT: int = 8000
    VECTOR_COLLECTION_NAME: str = "documents"

    # Embedding model
    EMBEDDING_MODEL_NAME: str = "paraphrase-multilingual-mpnet-base-v2"

    # Retrieval
    RAG_TOP_K: int = 5
    SEARCH_SCORE_THRESHOLD: float = 0.7
    DEFAULT_SEARCH_RESULTS: int = 10
    MAX_SEARCH_RESULTS: int = 50

    # Document processing
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200

    # LLM
    LLM_BASE_URL: str = "http://localhost:11434"
    LLM_MODEL_NAME: str = "llama3.1:8b"
    LLM_TEMPERATURE: float = 0.7
    REQUEST_TIMEOUT: int = 60  # seconds

    # Conversation
    RAG_ENABLED: bool = True
    CHAT_CONTEXT_LIMIT: int = 10

    # Sessions
    SESSION_TITLE_MAX_LENGTH: int = 100
    DEFAULT_SESSION_TITLE: str = "New Session"

    # Security (SET IN .env FOR PROD)
    REQUIRE_AUTHENTICATION: bool = True
    API_KEY: Optional[str] = None
    JWT_SECRET: Optional[str] = None
    TOKEN_EXPIRY_SECONDS: int = 3600

    # App metadata
    APP_TITLE: str = "Chat RAG Backend"
    APP_VERSION: str = "1.0.0"

    @property
    def vector_store_configured(self) -> bool:
        """True when enough settings are present to reach a vector backend."""
        store_type = (self.VECTOR_STORE_TYPE or "none").lower()
        if store_type == "chromadb":
            return bool(self.CHROMA_HOST or self.VECTOR_DB_PATH)
        if store_type == "faiss":
            return bool(self.VECTOR_DB_PATH)
        return False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
