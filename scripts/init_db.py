"""
Create the document intake tables directly from the models.
Alembic migrations are the normal path; this is for local development.

    python -m scripts.init_db [--drop]
"""
import asyncio
import sys

from app.core.config import settings
from app.db.base import Base
from app.db.session import engine
import app.db.models  # noqa: F401  загрузит все модели из __init__.py


async def init_db(drop: bool = False):
    """Инициализация базы данных"""
    print(f"🔗 Подключение к БД: {settings.DATABASE_URL.split('@')[-1]}")

    async with engine.begin() as conn:
        if drop:
            print("🗑️  Удаление старых таблиц...")
            await conn.run_sync(Base.metadata.drop_all)

        print("📦 Создание таблиц: " + ", ".join(sorted(Base.metadata.tables)))
        await conn.run_sync(Base.metadata.create_all)

    await engine.dispose()
    print("✅ База данных инициализирована успешно!")


if __name__ == "__main__":
    asyncio.run(init_db(drop="--drop" in sys.argv[1:]))
