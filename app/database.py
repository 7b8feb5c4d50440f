from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine with a bounded connection pool."""
    if settings.database_url.startswith("sqlite"):
        # In-process database (tests, local runs): one shared connection
        return create_async_engine(
            settings.database_url,
            echo=settings.db_echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_async_engine(
        settings.database_url,
        echo=settings.db_echo,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout_seconds,
        pool_recycle=settings.db_pool_recycle_seconds,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(get_settings())

# Create async session factory using async_sessionmaker
async_session = build_session_factory(engine)


# Dependency for getting DB session
async def get_db():
    async with async_session() as session:
        yield session


# Helper function to create tables (optional, useful for testing)
async def create_db_and_tables(target: AsyncEngine = engine):
    async with target.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
