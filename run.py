#!/usr/bin/env python
"""
实习管理平台后端启动脚本

用法:
    python run.py                        # 默认启动 (127.0.0.1:8000)
    python run.py -p 8080 --host 0.0.0.0 # 指定端口并允许外网访问
    python run.py --reload               # 开启热重载
    python run.py --init-db              # 只建表，不启动服务
    python run.py --backfill-profiles    # 为只有账号的学生补全档案后退出
"""
import argparse
import asyncio
import sys
from pathlib import Path

# 确保项目根目录在 Python 路径中
ROOT_DIR = Path(__file__).parent
sys.path.insert(0, str(ROOT_DIR))

DEFAULT_SECRET_KEY = "change-this-secret-key-in-production"


def parse_args():
    """解析命令行参数"""
    parser = argparse.ArgumentParser(
        description="实习管理平台后端启动脚本",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-p", "--port", type=int, default=8000, help="服务端口 (默认: 8000)")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="服务地址 (默认: 127.0.0.1)")
    parser.add_argument("--reload", action="store_true", help="开启热重载 (开发模式)")
    parser.add_argument("--workers", type=int, default=1, help="工作进程数 (默认: 1)")

    maintenance = parser.add_mutually_exclusive_group()
    maintenance.add_argument("--init-db", action="store_true", help="创建数据表后退出")
    maintenance.add_argument(
        "--backfill-profiles",
        action="store_true",
        help="为只有通用账号的学生生成详细档案后退出",
    )
    return parser.parse_args()


def check_settings(settings) -> None:
    """启动前检查关键配置"""
    if settings.app_env == "production" and settings.secret_key == DEFAULT_SECRET_KEY:
        print("❌ 错误: 生产环境必须在 .env 中设置 SECRET_KEY")
        sys.exit(1)
    if settings.email_enabled and not (settings.smtp_user and settings.smtp_password):
        print("⚠️  已开启邮件通知但未配置 SMTP_USER / SMTP_PASSWORD，通知将发送失败")


async def init_only():
    from app.core.database import close_db, init_db

    await init_db()
    await close_db()


def main():
    """主函数"""
    args = parse_args()

    from app.core.config import settings

    check_settings(settings)

    if args.init_db:
        asyncio.run(init_only())
        print(f"✅ 数据表已创建: {settings.database_url}")
        return
    if args.backfill_profiles:
        from scripts.backfill_student_profiles import main as backfill_main

        asyncio.run(backfill_main())
        return

    print("=" * 50)
    print("  实习管理平台后端服务")
    print("=" * 50)
    print(f"   地址: http://{args.host}:{args.port}/api/v1")
    if settings.debug:
        print(f"   文档: http://{args.host}:{args.port}/docs")
    print(f"   环境: {settings.app_env}")
    print(f"   数据库: {settings.database_url}")
    print(f"   邮件通知: {'开启 (' + settings.smtp_host + ')' if settings.email_enabled else '关闭，仅记录日志'}")
    print(f"   热重载: {'开启' if args.reload else '关闭'}")
    print("\n" + "-" * 50 + "\n")

    import uvicorn

    try:
        uvicorn.run(
            "app.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=args.workers if not args.reload else 1,
            log_level="info",
        )
    except KeyboardInterrupt:
        print("\n👋 服务已停止")


if __name__ == "__main__":
    main()
