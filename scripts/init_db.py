#!/usr/bin/env python3
"""数据库初始化脚本

按 DB_* 环境变量连接 PostgreSQL，创建通知引擎需要的表。
加 --reset 时先删除再重建。
"""

import argparse
import asyncio
import logging
import sys

from facility_platform.database import db_manager
from shared.config import app_config
from shared.logger import configure_logging

logger = logging.getLogger("facility_platform.scripts.init_db")


async def main(reset: bool = False) -> int:
    db_manager.initialize()
    try:
        if not await db_manager.health_check():
            logger.error(
                f"无法连接数据库 {app_config.database.host}:{app_config.database.port}/"
                f"{app_config.database.name}"
            )
            return 1

        if reset:
            logger.warning("--reset: 删除现有表")
            await db_manager.drop_tables()

        tables = await db_manager.create_tables()
        logger.info(f"数据库初始化完成，共 {len(tables)} 张表")
        return 0
    finally:
        await db_manager.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="初始化 CleanGuard QC 数据库")
    parser.add_argument("--reset", action="store_true", help="删除并重建所有表")
    args = parser.parse_args()

    configure_logging(app_config.logging)
    sys.exit(asyncio.run(main(reset=args.reset)))
