from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

Base = declarative_base()


def make_engine(database_url: str):
    return create_engine(
        database_url,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {}
    )


def make_sessionmaker(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db(request: Request):
    """One session per request, closed once the response is produced."""
    db = request.app.state.sessionmaker()
    try:
        yield db
    finally:
        db.close()
