# procredit/dependencies.py

import logging
from typing import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session
from procredit.db.session import SessionLocal

logger = logging.getLogger(__name__)

# --- Управление сессией БД ---
def get_db_session_instance() -> Session:
    """Создает и возвращает экземпляр сессии БД."""
    return SessionLocal()

def get_db() -> Iterator[Session]:
    """
    Основная зависимость FastAPI для получения сессии БД.
    Это генератор, который корректно работает с `Depends`.
    """
    db = get_db_session_instance()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def get_db_context() -> Iterator[Session]:
    """
    Контекстный менеджер для получения сессии БД вне FastAPI (фоновые задачи).
    """
    db = get_db_session_instance()
    try:
        yield db
    finally:
        db.close()
