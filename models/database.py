"""Database engine and session factory for RingSim."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase


class Base(DeclarativeBase):
    pass


def create_db_engine(db_url: str):
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    return create_engine(db_url, echo=False, connect_args=connect_args)


def create_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)
