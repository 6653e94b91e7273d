# storefront_api/db.py

import os
from storefront_api import settings
from sqlmodel import SQLModel, create_engine, Session


def connection_url(testing: bool|None = None) -> str:
    """
    The SQLAlchemy URL for this process: TEST_DATABASE_URL under TESTING=1, else DATABASE_URL.
    Plain postgresql URLs are pointed at the psycopg 3 driver.
    """
    if testing is None:
        testing = os.getenv("TESTING") == "1"
    url = str(settings.TEST_DATABASE_URL if testing else settings.DATABASE_URL)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql", "postgresql+psycopg", 1)
    return url


connection_string = connection_url()

# sqlite connections are shared with the TestClient worker thread
connect_args = {"check_same_thread": False} if connection_string.startswith("sqlite") else {}

# recycle pooled connections after 5 minutes
engine = create_engine(
    connection_string, connect_args=connect_args, pool_recycle=300
)


def create_db_and_tables()->None:
    SQLModel.metadata.create_all(engine)

def get_session():
    with Session(engine) as session:
        yield session
