"""
Database module for the Guesty sync system.
"""

from .models import (
    Base, Property, Reservation, SyncLog, find_property,
    get_engine, get_session, get_session_factory, init_models
)

__all__ = [
    'Base',
    'Property',
    'Reservation',
    'SyncLog',
    'find_property',
    'get_engine',
    'get_session',
    'get_session_factory',
    'init_models'
]
