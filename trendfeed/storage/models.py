"""SQLAlchemy models for the trendfeed database."""

from datetime import datetime

from sqlalchemy import create_engine, Column, Integer, String, Text, Boolean, DateTime, Float, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SourceStateModel(Base):
    """User overrides and freshness timestamp per source."""
    __tablename__ = "sources"

    id = Column(String(255), primary_key=True)
    enabled = Column(Boolean)        # None = catalogue default
    priority = Column(Integer)       # 1-5, None = catalogue default
    last_fetched_at = Column(DateTime)


class ContentItemModel(Base):
    """Database model for aggregated content items."""
    __tablename__ = "content_items"

    id = Column(String(255), primary_key=True)
    source_id = Column(String(255), nullable=False)

    # Content
    title = Column(Text, nullable=False)
    description = Column(Text)
    url = Column(String(2048), nullable=False)
    image_url = Column(String(2048))
    author = Column(String(255))
    tags = Column(Text)  # JSON array

    # Engagement counters
    engagement_type = Column(String(50))
    engagement = Column(Text)  # JSON object

    # Tagged on insert
    sentiment = Column(String(20))
    sentiment_score = Column(Float)

    # Timestamps
    published_at = Column(DateTime, nullable=False)
    fetched_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_content_source', 'source_id'),
        Index('idx_content_published', 'published_at'),
        Index('idx_content_source_published', 'source_id', 'published_at'),
    )


class EngagementSnapshotModel(Base):
    """Point-in-time engagement counters, used to derive velocity."""
    __tablename__ = "engagement_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    content_id = Column(String(255), nullable=False)
    snapshot_at = Column(DateTime, nullable=False)
    metrics = Column(Text)  # JSON object
    primary_value = Column(Float, default=0.0)
    velocity = Column(Float, default=0.0)

    __table_args__ = (
        Index('idx_snapshot_content', 'content_id'),
        Index('idx_snapshot_content_at', 'content_id', 'snapshot_at'),
    )


class SourceHealthModel(Base):
    """Database model for per-source fetch health."""
    __tablename__ = "source_health"

    source_id = Column(String(255), primary_key=True)
    last_fetch_at = Column(DateTime)
    last_success_at = Column(DateTime)
    last_item_count = Column(Integer, default=0)
    consecutive_failures = Column(Integer, default=0)
    last_error = Column(Text)


class SettingModel(Base):
    """Key/value user settings, values stored as JSON."""
    __tablename__ = "settings"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)


def init_db(database_url: str):
    """Initialize database and create all tables."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return engine
