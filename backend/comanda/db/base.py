from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from comanda.config import DATABASE_URL
from comanda.db.models import Base


def make_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, future=True, connect_args=connect_args)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False)

def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
