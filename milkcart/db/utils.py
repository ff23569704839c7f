def _normalize_db_url(url: str | None) -> str | None:
    # managed postgres often hands out "postgres://..." ; asyncpg/SQLAlchemy needs "postgresql+asyncpg://..."
    if not url:
        return None
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def is_sqlite_url(url: str | None) -> bool:
    return bool(url) and url.startswith("sqlite")
