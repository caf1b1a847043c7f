from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base


def init_db(echo: bool = False, *, db_file: str | Path = "ledger.db", reset: bool = False) -> sessionmaker[Session]:
    path = Path(db_file)
    if reset and path.exists():
        path.unlink()
    path.parent.mkdir(parents=True, exist_ok=True)

    engine: Engine = create_engine(f"sqlite:///{path}", echo=echo, connect_args={"check_same_thread": False})

    Base.metadata.create_all(engine)
    return sessionmaker(engine)
