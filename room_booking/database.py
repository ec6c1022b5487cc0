# database.py
from databases import Database
from sqlalchemy import create_engine, MetaData

# Table definitions in models.py register themselves here
metadata = MetaData()


def create_database(database_url: str) -> Database:
    """Builds the async store handle. The caller owns connect/disconnect."""
    return Database(database_url)


def create_schema(database_url: str) -> None:
    """Create tables if they don't exist, using a short-lived sync engine."""
    engine = create_engine(database_url)
    try:
        metadata.create_all(bind=engine)
    finally:
        engine.dispose()
