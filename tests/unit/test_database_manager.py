"""
数据库管理器单元测试
"""

import pytest

from facility_platform.database.connection import DatabaseManager
from facility_platform.database.repositories import UserRepository
from shared.models.user import UserRole

from tests.helpers import create_user


class TestDatabaseManager:
    """测试数据库管理器"""

    @pytest.mark.asyncio
    async def test_uninitialized(self):
        """测试未初始化时的行为"""
        manager = DatabaseManager()

        assert manager.initialized is False
        assert await manager.health_check() is False
        with pytest.raises(RuntimeError):
            async with manager.get_async_session():
                pass

    @pytest.mark.asyncio
    async def test_create_tables_returns_names(self):
        manager = DatabaseManager()
        manager.initialize(test_mode=True)

        tables = await manager.create_tables()

        assert {"users", "locations", "templates", "tickets", "inspections", "user_locations"} <= set(tables)
        assert await manager.health_check() is True
        assert manager.test_mode is True

        await manager.close()
        assert manager.initialized is False
        assert await manager.health_check() is False

    @pytest.mark.asyncio
    async def test_session_commits(self, db_manager, session_factory):
        """测试会话正常退出时提交"""
        user_id = await create_user(session_factory, "commit@example.com")

        async with db_manager.get_async_session() as session:
            user = await UserRepository(session).get_by_id(user_id)

        assert user is not None
        assert user.role == UserRole.INSPECTOR

    @pytest.mark.asyncio
    async def test_session_rolls_back(self, db_manager):
        """测试会话内异常时回滚"""
        with pytest.raises(ValueError):
            async with db_manager.get_async_session() as session:
                await UserRepository(session).create({
                    "name": "Ghost",
                    "email": "ghost@example.com",
                    "role": UserRole.CLIENT,
                })
                raise ValueError("abort")

        async with db_manager.get_async_session() as session:
            assert await UserRepository(session).get_by_email("ghost@example.com") is None
