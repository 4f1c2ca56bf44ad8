"""
SQLAlchemy Base Configuration

This module provides the SQLAlchemy declarative base shared by the question
engine's tables, with a constraint naming convention so migrations produce
stable names.
"""

from typing import Any, Dict
import logging
from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata = MetaData(naming_convention=convention)

Base = declarative_base(metadata=metadata)


class ModelBase(Base):
    """Base class for all engine tables."""

    __abstract__ = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert the row to a dictionary of column values."""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }

    def update(self, data: Dict[str, Any]) -> None:
        """Set the columns named in ``data``."""
        for key, value in data.items():
            if key in self.__table__.columns:
                setattr(self, key, value)
