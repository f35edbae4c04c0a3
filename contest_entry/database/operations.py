"""
Database operations for the contest entry engine.
Two tables:
1. entries - one row per entry attempt (any outcome)
2. entry_limits - per (contest, profile) frequency-limit state
"""

import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import (
    create_engine, func, select, Column, DateTime, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import sessionmaker, declarative_base

from contest_entry.models import EntryFrequency, EntryLimitRecord, EntryResult, EntryStatus
from contest_entry.utils.helpers import utc_now

Base = declarative_base()

# None = never eligible again
FREQUENCY_INTERVALS = {
    EntryFrequency.ONCE: None,
    EntryFrequency.DAILY: timedelta(hours=24),
    EntryFrequency.WEEKLY: timedelta(days=7),
    EntryFrequency.UNLIMITED: timedelta(0),
}

UPSERT_DIALECTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


def next_eligible_at(frequency: EntryFrequency, now: datetime) -> Optional[datetime]:
    interval = FREQUENCY_INTERVALS[EntryFrequency(frequency)]
    return None if interval is None else now + interval


class EntryRecord(Base):
    """One entry attempt."""
    __tablename__ = 'entries'

    id = Column(String(64), primary_key=True)
    contest_id = Column(String(100), nullable=False, index=True)
    profile_id = Column(String(100), nullable=False, index=True)
    status = Column(String(20), nullable=False)  # EntryStatus value
    message = Column(Text)
    error_code = Column(String(50))
    errors = Column(Text)  # JSON array of error strings, in order
    confirmation_number = Column(String(100))
    screenshot_path = Column(String(1000))
    duration_ms = Column(Integer, default=0)
    strategy = Column(String(20))
    submitted_at = Column(DateTime)
    confirmed_at = Column(DateTime)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "contest_id": self.contest_id,
            "profile_id": self.profile_id,
            "status": self.status,
            "message": self.message,
            "error_code": self.error_code,
            "errors": json.loads(self.errors) if self.errors else [],
            "confirmation_number": self.confirmation_number,
            "screenshot_path": self.screenshot_path,
            "duration_ms": self.duration_ms,
            "strategy": self.strategy,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class EntryLimit(Base):
    """Frequency-limit state. Never deleted by the engine."""
    __tablename__ = 'entry_limits'
    __table_args__ = (UniqueConstraint('contest_id', 'profile_id', name='uq_entry_limit_pair'),)

    id = Column(Integer, primary_key=True)
    contest_id = Column(String(100), nullable=False)
    profile_id = Column(String(100), nullable=False)
    entry_count = Column(Integer, nullable=False, default=0)
    last_entry_at = Column(DateTime)
    next_eligible_at = Column(DateTime)  # NULL = one-time entry used

    def to_record(self) -> EntryLimitRecord:
        return EntryLimitRecord(
            contest_id=self.contest_id,
            profile_id=self.profile_id,
            entry_count=self.entry_count,
            last_entry_at=self.last_entry_at,
            next_eligible_at=self.next_eligible_at,
        )


class EntryStore:
    """
    Synchronous storage operations. Errors propagate as SQLAlchemyError;
    EntryRecorder decides how to degrade.
    """

    def __init__(self, db_url: str):
        self.engine = create_engine(db_url, echo=False)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine)
        logger.debug(f"Database initialized: {db_url}")

    # ==================== ENTRIES ====================

    def add_entry(self, result: EntryResult, now: datetime) -> str:
        """Insert one attempt row."""
        session = self.Session()
        try:
            status = EntryStatus(result.status)
            session.add(EntryRecord(
                id=result.entry_id,
                contest_id=result.contest_id,
                profile_id=result.profile_id,
                status=status.value,
                message=result.message,
                error_code=result.error_code,
                errors=json.dumps(result.errors),
                confirmation_number=result.confirmation_number,
                screenshot_path=result.screenshot_path,
                duration_ms=result.duration_ms,
                strategy=result.strategy,
                submitted_at=now if status in (EntryStatus.SUBMITTED, EntryStatus.CONFIRMED) else None,
                confirmed_at=now if status == EntryStatus.CONFIRMED else None,
                created_at=now,
                updated_at=now,
            ))
            session.commit()
            return result.entry_id
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def update_entry_status(self, entry_id: str, status: EntryStatus, now: datetime,
                            message: Optional[str] = None, screenshot_path: Optional[str] = None) -> bool:
        session = self.Session()
        try:
            record = session.get(EntryRecord, entry_id)
            if not record:
                return False
            status = EntryStatus(status)
            record.status = status.value
            record.updated_at = now
            if message is not None:
                record.message = message
            if screenshot_path is not None:
                record.screenshot_path = screenshot_path
            if status == EntryStatus.CONFIRMED:
                record.confirmed_at = now
            session.commit()
            return True
        finally:
            session.close()

    def get_entry(self, entry_id: str) -> Optional[Dict[str, Any]]:
        session = self.Session()
        try:
            record = session.get(EntryRecord, entry_id)
            return record.to_dict() if record else None
        finally:
            session.close()

    def get_entries(self, contest_id: Optional[str] = None, profile_id: Optional[str] = None,
                    limit: int = 100) -> List[Dict[str, Any]]:
        """Most recent attempts first, optionally filtered."""
        session = self.Session()
        try:
            query = session.query(EntryRecord)
            if contest_id is not None:
                query = query.filter(EntryRecord.contest_id == contest_id)
            if profile_id is not None:
                query = query.filter(EntryRecord.profile_id == profile_id)
            records = query.order_by(EntryRecord.created_at.desc()).limit(limit).all()
            return [r.to_dict() for r in records]
        finally:
            session.close()

    def get_entry_stats(self) -> Dict[str, int]:
        """Total attempts plus a count per status."""
        session = self.Session()
        try:
            rows = session.query(EntryRecord.status, func.count(EntryRecord.id)).group_by(EntryRecord.status).all()
            stats = {status.value: 0 for status in EntryStatus}
            for status, count in rows:
                stats[status] = count
            stats["total"] = sum(count for _, count in rows)
            stats["limits"] = session.query(EntryLimit).count()
            return stats
        finally:
            session.close()

    # ==================== ENTRY LIMITS ====================

    def get_entry_limit(self, contest_id: str, profile_id: str) -> Optional[EntryLimitRecord]:
        session = self.Session()
        try:
            limit = session.query(EntryLimit).filter(
                EntryLimit.contest_id == contest_id,
                EntryLimit.profile_id == profile_id,
            ).first()
            return limit.to_record() if limit else None
        finally:
            session.close()

    def is_eligible(self, contest_id: str, profile_id: str, now: datetime) -> bool:
        """
        True when the pair has never entered, or its window has elapsed.
        A record with no next_eligible_at means the one-time entry is used.
        """
        limit = self.get_entry_limit(contest_id, profile_id)
        if limit is None:
            return True
        if limit.next_eligible_at is None:
            return False
        return now >= limit.next_eligible_at

    def upsert_entry_limit(self, contest_id: str, profile_id: str,
                           frequency: EntryFrequency, now: datetime) -> EntryLimitRecord:
        """
        Create the limit record or bump it, atomically per key.

        SQLite and PostgreSQL use a single INSERT ... ON CONFLICT DO UPDATE;
        other dialects lock the row with SELECT ... FOR UPDATE.
        """
        next_at = next_eligible_at(frequency, now)
        insert = UPSERT_DIALECTS.get(self.engine.dialect.name)

        session = self.Session()
        try:
            if insert is not None:
                stmt = insert(EntryLimit).values(
                    contest_id=contest_id,
                    profile_id=profile_id,
                    entry_count=1,
                    last_entry_at=now,
                    next_eligible_at=next_at,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["contest_id", "profile_id"],
                    set_={
                        "entry_count": EntryLimit.entry_count + 1,
                        "last_entry_at": stmt.excluded.last_entry_at,
                        "next_eligible_at": stmt.excluded.next_eligible_at,
                    },
                )
                session.execute(stmt)
            else:
                limit = session.execute(
                    select(EntryLimit)
                    .where(EntryLimit.contest_id == contest_id, EntryLimit.profile_id == profile_id)
                    .with_for_update()
                ).scalar_one_or_none()
                if limit is None:
                    limit = EntryLimit(contest_id=contest_id, profile_id=profile_id, entry_count=0)
                    session.add(limit)
                limit.entry_count = (limit.entry_count or 0) + 1
                limit.last_entry_at = now
                limit.next_eligible_at = next_at
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        return self.get_entry_limit(contest_id, profile_id)
