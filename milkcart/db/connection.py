from sqlalchemy.ext.asyncio import create_async_engine,async_sessionmaker,AsyncSession
from sqlalchemy.pool import NullPool
from milkcart.config.settings import config_settings
from milkcart.db.utils import _normalize_db_url, is_sqlite_url

DATABASE_URL = _normalize_db_url(config_settings.DATABASE_URL)

engine_kwargs = {"echo": config_settings.DB_ECHO}
if is_sqlite_url(DATABASE_URL):
    # one connection per session keeps sqlite file locks short
    engine_kwargs["poolclass"] = NullPool
else:
    engine_kwargs["pool_pre_ping"] = True

async_engine = create_async_engine(DATABASE_URL, **engine_kwargs)

async_session = async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)
