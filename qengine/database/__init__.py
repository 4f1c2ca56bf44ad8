"""
Database Module

Tables, sessions and the data mapper that stores question usages.
"""

from qengine.database.base import Base, ModelBase, metadata
from qengine.database.mapper import DataMapper
from qengine.database.session import create_db_engine, create_session_factory, init_database
from qengine.database.unit_of_work import UnitOfWork

__all__ = [
    'Base',
    'ModelBase',
    'metadata',
    'DataMapper',
    'UnitOfWork',
    'create_db_engine',
    'create_session_factory',
    'init_database',
]
