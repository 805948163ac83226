import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from rankstore.config import Config
from rankstore.database.key_value import KeyValueStore
from rankstore.database.models import Base, RankStoreRecord
from rankstore.utils.logger import setup_logger
from rankstore.utils.rank_exceptions import BackingStoreError, BackingStoreUnavailableError, SizeExceededError

class SqlKeyValueStore(KeyValueStore):
    """Key/value store kept in a single SQL table through SQLAlchemy's async engine."""
    
    def __init__(self, database_url: str, max_value_size: int = None):
        self.logger = setup_logger(__name__)
        self.database_url = self._to_async_url(database_url)
        self.max_value_size = max_value_size or Config.MAX_VALUE_SIZE
        self.engine = None
        self.async_session = None
        self._init_lock = asyncio.Lock()
    
    @staticmethod
    def _to_async_url(database_url: str) -> str:
        # Convert sqlite URL to async if needed
        if database_url.startswith('sqlite:///'):
            return database_url.replace('sqlite:///', 'sqlite+aiosqlite:///', 1)
        return database_url
    
    async def initialize(self):
        """Initialize the database connection and create tables"""
        async with self._init_lock:
            if self.engine is not None:
                return
            
            self.logger.info("Initializing key/value table...")
            engine = create_async_engine(
                self.database_url,
                echo=Config.DEBUG,
                future=True
            )
            
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            except (OperationalError, OSError) as e:
                await engine.dispose()
                raise BackingStoreUnavailableError("initialize", str(e)) from e
            
            self.engine = engine
            self.async_session = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )
            self.logger.info("Key/value table initialized successfully")
    
    @asynccontextmanager
    async def get_session(self):
        """Get a database session, translating driver failures"""
        if self.engine is None:
            await self.initialize()
        
        async with self.async_session() as session:
            try:
                yield session
            except OperationalError as e:
                await session.rollback()
                raise BackingStoreUnavailableError("session", str(e)) from e
            except DBAPIError as e:
                await session.rollback()
                raise BackingStoreError("session", str(e)) from e
    
    async def get(self, key: str) -> Optional[bytes]:
        async with self.get_session() as session:
            record = await session.get(RankStoreRecord, key)
            return record.value if record else None
    
    async def set(self, key: str, value: bytes):
        if len(value) > self.max_value_size:
            raise SizeExceededError(key, len(value), self.max_value_size)
        
        async with self.get_session() as session:
            await session.merge(RankStoreRecord(key=key, value=bytes(value)))
            await session.commit()
    
    async def close(self):
        """Close database connections"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.logger.info("Key/value table connections closed")
