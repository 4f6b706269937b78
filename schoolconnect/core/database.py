# schoolconnect/core/database.py
"""Database connection and session management using SQLAlchemy."""
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy import text
import logging

from .config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine; asyncpg gets the pool and server settings tuned for Postgres"""
    if database_url.startswith("postgresql"):
        return create_async_engine(
            database_url,
            pool_size=15,
            max_overflow=25,
            pool_timeout=60,
            pool_recycle=1800,
            pool_pre_ping=True,
            echo=echo,
            connect_args={
                "command_timeout": 60,
                "server_settings": {
                    "jit": "off",
                    "application_name": "schoolconnect_api",
                    "statement_timeout": "60s",
                    "idle_in_transaction_session_timeout": "60s",
                    "lock_timeout": "30s",
                }
            }
        )
    return create_async_engine(database_url, echo=echo)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=False,
    )


engine = build_engine(settings.database_url, echo=(settings.environment == 'development'))

# Regular session factory for API requests
AsyncSessionLocal = build_session_factory(engine)

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for API requests with proper error handling"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Database session error: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()

async def health_check_db() -> bool:
    """Fast health check"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False

# Cleanup function for application shutdown
async def close_db_connections():
    """Properly close all database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
