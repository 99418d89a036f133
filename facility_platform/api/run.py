"""API服务器启动脚本"""

import argparse

import uvicorn

from shared.config import app_config


def main():
    """启动API服务器，命令行参数覆盖 HOST/PORT 配置"""
    parser = argparse.ArgumentParser(description="CleanGuard QC 通知服务")
    parser.add_argument("--host", default=app_config.host)
    parser.add_argument("--port", type=int, default=app_config.port)
    parser.add_argument("--reload", action="store_true", default=app_config.debug)
    args = parser.parse_args()

    uvicorn.run(
        "facility_platform.api.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=app_config.logging.level.lower(),
        access_log=False,  # 请求日志由 RequestLoggingMiddleware 输出
    )


if __name__ == "__main__":
    main()
