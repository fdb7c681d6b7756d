from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from liftdesk.config import settings

_connection_url = settings.database_connection_url
_connect_args = {"check_same_thread": False} if _connection_url.startswith("sqlite") else {}

engine = create_engine(_connection_url, connect_args=_connect_args)

# Ensure search_path is set to public schema for PostgreSQL
if engine.dialect.name == "postgresql":
    @event.listens_for(engine, "connect")
    def set_search_path(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("SET search_path TO public")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
