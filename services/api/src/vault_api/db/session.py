"""数据库引擎与会话管理。"""

from collections.abc import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from vault_api.core.config import get_settings
from vault_api.db.base import Base


def build_engine(database_url: str, **kwargs) -> Engine:
    """按连接地址创建引擎，SQLite 需允许跨线程使用连接。"""
    if database_url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        return create_engine(database_url, future=True, connect_args=connect_args, **kwargs)
    return create_engine(database_url, future=True, pool_pre_ping=True, **kwargs)


def init_schema(bind: Engine) -> None:
    """按模型定义建表（开发环境与测试使用，生产由迁移脚本维护）。"""
    Base.metadata.create_all(bind=bind)


settings = get_settings()

engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """为每个请求提供独立数据库会话。"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
