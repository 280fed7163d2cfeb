from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from inchforward.core.config import settings

connect_args = {}
engine_options = {}
if "postgresql" in settings.DATABASE_URL:
    connect_args = {"server_settings": {"jit": "off"}}
    engine_options = {"pool_size": 20, "max_overflow": 10, "pool_recycle": 3600}

engine = create_async_engine(
    settings.async_database_url,
    echo=False,
    pool_pre_ping=True,
    connect_args=connect_args,
    **engine_options
)

AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()

async def init_db(bind=None):
    # Models must be imported so their tables are registered on Base.metadata
    from inchforward.models import goal  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
