import sqlalchemy
from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import declarative_base
from uuid_extension import uuid7

Base = declarative_base()


class TimestampMixin:
    created_at = Column(
        sqlalchemy.DateTime(timezone=True), server_default=sqlalchemy.func.now(), nullable=False
    )
    updated_at = Column(
        sqlalchemy.DateTime(timezone=True),
        server_default=sqlalchemy.func.now(),
        onupdate=sqlalchemy.func.now(),
        nullable=False,
    )


class BaseModel(TimestampMixin, Base):
    __abstract__ = True
    id = Column(String, primary_key=True, default=lambda: str(uuid7()), index=True)


class SequentialIdModel(TimestampMixin, Base):
    """Base for rows addressed by a sequential integer id (accounts)."""

    __abstract__ = True
    id = Column(Integer, primary_key=True, autoincrement=True, index=True)


# Note: Models will import this Base. Do not import models here to avoid circular imports.
# app.platform.db.models imports every model so metadata is complete for create_all.
