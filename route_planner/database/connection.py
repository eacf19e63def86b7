from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from contextlib import contextmanager
from route_planner.config import settings

# Поддержка SQLite и PostgreSQL
database_url = settings.database_url
if "sqlite" in database_url:
    connect_args = {"check_same_thread": False}
    engine = create_engine(database_url, connect_args=connect_args)
else:
    # PostgreSQL
    engine = create_engine(database_url, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db():
    """Создать таблицы, если их еще нет"""
    # Регистрируем модели в метаданных
    from route_planner.models import ledger  # noqa: F401
    Base.metadata.create_all(bind=engine)


@contextmanager
def get_db_session():
    """Контекстный менеджер для работы с БД"""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
