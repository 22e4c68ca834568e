#!/usr/bin/env python3
"""
SQLAlchemy ORM models for the Guesty sync system.
"""

from sqlalchemy import create_engine, event, Column, Integer, String, Float, DateTime, Boolean, Text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import logging
import json

from utils.dates import utcnow

logger = logging.getLogger(__name__)

Base = declarative_base()


def _load_json_list(raw):
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


class Property(Base):
    """Property model - maps to Guesty listings and CSV-imported units"""
    __tablename__ = 'properties'

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(String, unique=True, nullable=False, index=True)  # Remote id (upsert key)
    name = Column(String, nullable=False)
    nickname = Column(String, index=True)  # CSV natural key
    address = Column(String, nullable=False, default='')
    bedrooms = Column(Integer)
    bathrooms = Column(Float)
    amenities = Column(Text)  # JSON array
    tags = Column(Text)  # JSON array
    property_type = Column(String)
    listing_url = Column(String)
    ical_url = Column(String)  # Managed locally, never overwritten by PMS sync
    source = Column(String, nullable=False, default='guesty')  # 'guesty' or 'csv'
    is_active = Column(Boolean, nullable=False, default=True)
    last_synced_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def get_amenities_list(self):
        """Parse amenities JSON string to list"""
        return _load_json_list(self.amenities)

    def get_tags_list(self):
        """Parse tags JSON string to list"""
        return _load_json_list(self.tags)

    def to_dict(self):
        return {
            'id': self.id,
            'propertyId': self.property_id,
            'name': self.name,
            'nickname': self.nickname,
            'address': self.address,
            'bedrooms': self.bedrooms,
            'bathrooms': self.bathrooms,
            'amenities': self.get_amenities_list(),
            'tags': self.get_tags_list(),
            'propertyType': self.property_type,
            'listingUrl': self.listing_url,
            'icalUrl': self.ical_url,
            'source': self.source,
            'isActive': self.is_active,
            'lastSyncedAt': self.last_synced_at.isoformat() if self.last_synced_at else None,
        }

    def __repr__(self):
        return f"<Property(property_id={self.property_id!r}, name={self.name!r})>"


class Reservation(Base):
    """Reservation model - maps to Guesty reservations endpoint"""
    __tablename__ = 'reservations'

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(String, unique=True, nullable=False, index=True)  # Remote id (upsert key)
    property_id = Column(String, nullable=False, index=True)  # Remote property id
    guest_name = Column(String, nullable=False)
    guest_email = Column(String)
    check_in = Column(DateTime, nullable=False, index=True)
    check_out = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default='unknown')
    channel = Column(String)
    total_price = Column(Integer)  # Minor currency units (cents)
    last_synced_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Reservation(reservation_id={self.reservation_id!r}, property_id={self.property_id!r})>"


class SyncLog(Base):
    """Sync log model - append-only record of every sync run"""
    __tablename__ = 'sync_logs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    sync_type = Column(String, nullable=False, index=True)  # 'properties', 'reservations' or 'webhook_*'
    status = Column(String, nullable=False)  # 'success' or 'error'
    properties_count = Column(Integer)
    reservations_count = Column(Integer)
    records_failed = Column(Integer, default=0)
    error_message = Column(Text)
    sync_date = Column(DateTime, default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'syncType': self.sync_type,
            'status': self.status,
            'propertiesCount': self.properties_count,
            'reservationsCount': self.reservations_count,
            'recordsFailed': self.records_failed,
            'errorMessage': self.error_message,
            'syncDate': self.sync_date.isoformat() if self.sync_date else None,
        }

    def __repr__(self):
        return f"<SyncLog(id={self.id}, sync_type={self.sync_type!r}, status={self.status!r})>"


def find_property(session, property_ref):
    """Look up a property by remote id, falling back to the local integer id."""
    ref = str(property_ref).strip()
    prop = session.query(Property).filter(Property.property_id == ref).first()
    if prop is None and ref.isdigit():
        prop = session.query(Property).filter(Property.id == int(ref)).first()
    return prop


@event.listens_for(SyncLog, 'before_update')
def _reject_sync_log_update(mapper, connection, target):
    raise ValueError(f"SyncLog rows are write-once (id={target.id})")


# Database connection utilities
# Engine cache to prevent connection leaks
_engine_cache = {}
_sessionmaker_cache = {}


def get_engine(database_url: str = None):
    """
    Create or retrieve cached SQLAlchemy engine.

    Args:
        database_url: Connection string. Defaults to DATABASE_URL from config.

    Returns:
        SQLAlchemy engine (cached per URL)
    """
    if database_url is None:
        from config import DATABASE_URL
        database_url = DATABASE_URL

    if not database_url:
        raise ValueError(
            "DATABASE_URL environment variable is required. "
            "Example: postgresql://user@localhost:5432/guesty_dev"
        )

    if database_url in _engine_cache:
        return _engine_cache[database_url]

    if database_url.startswith('sqlite'):
        # In-memory SQLite must share one connection across threads
        engine_kwargs = {'connect_args': {'check_same_thread': False}}
        if database_url in ('sqlite://', 'sqlite:///:memory:'):
            engine_kwargs['poolclass'] = StaticPool
        engine = create_engine(database_url, echo=False, **engine_kwargs)
    else:
        engine = create_engine(
            database_url,
            echo=False,
            pool_size=3,
            max_overflow=1,
            pool_timeout=30,
            pool_pre_ping=True,    # Verify connections before using
            pool_recycle=3600,     # Recycle connections after 1 hour
        )

    _engine_cache[database_url] = engine
    return engine


def get_session_factory(database_url: str = None):
    """Return the cached sessionmaker bound to the engine for database_url."""
    engine = get_engine(database_url)

    if engine not in _sessionmaker_cache:
        _sessionmaker_cache[engine] = sessionmaker(bind=engine, expire_on_commit=False)

    return _sessionmaker_cache[engine]


def get_session(database_url: str = None):
    """Create database session using cached engine and sessionmaker."""
    return get_session_factory(database_url)()


def init_models(database_url: str = None):
    """Create tables if they don't exist and return the engine."""
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)
    logger.debug("Database tables ensured")
    return engine
