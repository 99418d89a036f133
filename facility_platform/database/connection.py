"""数据库连接管理"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shared.config import DatabaseConfig, app_config
from shared.models import Base

logger = logging.getLogger(__name__)

# 测试模式：所有会话共享同一个内存连接
SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


class DatabaseManager:
    """数据库管理器

    调度器、设备令牌存储和接收人解析器都通过 get_async_session()
    各自打开短会话，会话之间不共享事务。
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or app_config.database
        self._async_engine: Optional[AsyncEngine] = None
        self._async_session_factory: Optional[async_sessionmaker] = None
        self._test_mode = False

    def _engine_options(self) -> Dict[str, Any]:
        if self._test_mode:
            return {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        return {
            "pool_size": self.config.pool_size,
            "max_overflow": self.config.max_overflow,
            "pool_recycle": self.config.pool_recycle,
            "pool_pre_ping": True,
        }

    def initialize(self, test_mode: bool = False, echo: bool = False) -> None:
        """
        创建引擎和会话工厂

        Args:
            test_mode: 使用 SQLite 内存数据库，否则连接配置中的 PostgreSQL
            echo: 输出SQL语句
        """
        self._test_mode = test_mode
        url = SQLITE_MEMORY_URL if test_mode else self.config.async_url

        self._async_engine = create_async_engine(url, echo=echo, **self._engine_options())
        self._async_session_factory = async_sessionmaker(
            bind=self._async_engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False
        )

        if test_mode:
            self._enable_sqlite_foreign_keys()

        target = "SQLite 内存库" if test_mode else f"{self.config.host}:{self.config.port}/{self.config.name}"
        logger.info(f"数据库连接已初始化 ({target})")

    def _enable_sqlite_foreign_keys(self) -> None:
        """SQLite 默认不检查外键，ondelete 规则依赖该设置"""

        @event.listens_for(self._async_engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    def _require_engine(self) -> AsyncEngine:
        if self._async_engine is None:
            raise RuntimeError("数据库未初始化，请先调用 initialize()")
        return self._async_engine

    @asynccontextmanager
    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """获取异步数据库会话，正常退出时提交，异常时回滚"""
        self._require_engine()

        async with self._async_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> List[str]:
        """创建缺失的表，返回模型对应的全部表名"""
        async with self._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        tables = [table.name for table in Base.metadata.sorted_tables]
        logger.info(f"数据库表已就绪: {', '.join(tables)}")
        return tables

    async def drop_tables(self) -> None:
        """删除全部模型表"""
        async with self._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        logger.info("数据库表删除完成")

    async def health_check(self) -> bool:
        """执行 SELECT 1，失败时记录错误并返回 False"""
        if self._async_engine is None:
            return False

        try:
            async with self._async_engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"数据库健康检查失败: {e}")
            return False

    async def close(self) -> None:
        """释放连接池"""
        if self._async_engine is not None:
            await self._async_engine.dispose()
            self._async_engine = None
            self._async_session_factory = None
            logger.info("数据库连接已关闭")

    @property
    def initialized(self) -> bool:
        """是否已初始化"""
        return self._async_session_factory is not None

    @property
    def test_mode(self) -> bool:
        return self._test_mode


# 全局数据库管理器实例
db_manager = DatabaseManager()
