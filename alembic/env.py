"""Alembic 環境：使用 embroideryos 的 Base 與 database_url，Alembic 以同步連線執行。
SQLite 相對路徑以專案根目錄為基準轉為絕對路徑。"""
from pathlib import Path
import sys

from logging.config import fileConfig

from alembic import context

_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from embroideryos.config import settings
from embroideryos.database import Base, normalize_database_url
import embroideryos.models  # noqa: F401  註冊所有資料表

config = context.config
if config.config_file_name is not None:
    config_path = Path(config.config_file_name).resolve()
    if config_path.exists():
        fileConfig(str(config_path))

target_metadata = Base.metadata


def sync_database_url(url: str) -> str:
    """asyncpg -> psycopg2、aiosqlite -> sqlite；SQLite 相對路徑轉絕對路徑"""
    url = normalize_database_url(url)
    if url.startswith("sqlite+aiosqlite"):
        url = url.replace("sqlite+aiosqlite", "sqlite", 1)
    if url.startswith("sqlite:///./"):
        rel = url.replace("sqlite:///./", "", 1).strip()
        return "sqlite:///" + (_project_root / rel).resolve().as_posix()
    return url.replace("postgresql+asyncpg", "postgresql+psycopg2", 1)


config.set_main_option("sqlalchemy.url", sync_database_url(settings.database_url))


def run_migrations_offline() -> None:
    """離線模式：只產生 SQL，不連 DB"""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """線上模式：連 DB 執行遷移"""
    from sqlalchemy import create_engine
    connectable = create_engine(config.get_main_option("sqlalchemy.url"))
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
