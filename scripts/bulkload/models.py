"""
ORM model for the message records being loaded.
"""
from typing import Any, List, Mapping, Tuple

from sqlalchemy import BigInteger, Column, DateTime, Integer, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

TABLE_NAME = "messages"


class Message(Base):
    __tablename__ = TABLE_NAME

    # SQLite only autoincrements/aliases rowid for a plain INTEGER primary key
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=False), nullable=False)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Message":
        return cls(id=row["id"], message=row["message"], created_at=row["created_at"])

    def __repr__(self) -> str:
        return f"<Message id={self.id} created_at={self.created_at}>"


# Column order and PostgreSQL types used by the COPY encoders
MESSAGE_COLUMNS: List[Tuple[str, str]] = [
    ("id", "bigint"),
    ("message", "text"),
    ("created_at", "timestamp"),
]


def column_names(columns: List[Tuple[str, str]] = MESSAGE_COLUMNS) -> List[str]:
    return [name for name, _ in columns]
