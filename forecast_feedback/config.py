import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./forecast_feedback.db"
DEFAULT_JWT_SECRET = "insecure-dev-secret-change-me-before-deploying"


@dataclass
class Settings:
    """Process-wide configuration, built once at startup and passed around explicitly."""
    database_url: str = DEFAULT_DATABASE_URL

    # External summarizer (OpenAI chat completions)
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None
    summarizer_timeout_seconds: float = 8.0
    summarizer_max_tokens: int = 220

    # Bearer tokens issued by the authentication collaborator
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"

    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    port: int = 4000

    @property
    def ai_configured(self) -> bool:
        return bool(self.openai_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            summarizer_timeout_seconds=float(os.getenv("SUMMARIZER_TIMEOUT_SECONDS", "8")),
            summarizer_max_tokens=int(os.getenv("SUMMARIZER_MAX_TOKENS", "220")),
            jwt_secret=os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            cors_allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=int(os.getenv("PORT", "4000")),
        )


def create_engine_and_session_factory(settings: Settings):
    """Create the async engine and its session factory."""
    engine: AsyncEngine = create_async_engine(
        settings.database_url,
        echo=False,
        future=True
    )

    session_factory = sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    logger.info("[DATABASE] Engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine, session_factory
