"""
資料庫連線與 Session（Async SQLAlchemy）
- PostgreSQL 一律改用 asyncpg driver（postgresql+asyncpg://）
- 正式環境交給 Alembic 建表；僅 SQLite + debug 時於啟動補建缺表
"""
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from embroideryos.config import settings


def normalize_database_url(url: str) -> str:
    """雲端常給 postgres:// 或 postgresql://，Async 必須改成 postgresql+asyncpg://"""
    url = str(url or "").strip()
    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    if url.startswith("postgresql+psycopg2://"):
        return "postgresql+asyncpg://" + url[len("postgresql+psycopg2://"):]
    return url


db_url = normalize_database_url(settings.database_url)

engine = create_async_engine(
    db_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    # 正式環境（PostgreSQL）不在啟動時建表，避免與 Alembic 版本衝突
    if not (db_url.startswith("sqlite") and settings.debug):
        return
    import embroideryos.models  # noqa: F401  註冊所有資料表
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
