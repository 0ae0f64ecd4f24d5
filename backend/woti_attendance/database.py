"""
Configuration de la connexion à la base de données PostgreSQL.
Utilise SQLAlchemy (moteur synchrone, pool de connexions partagé).
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from woti_attendance.config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dépendance FastAPI : fournit une session BDD et la ferme après usage."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Portée transactionnelle sur une session : commit si le bloc se termine
    normalement, rollback puis propagation de l'exception sinon.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
