"""
Entry recorder: frequency limits and the durable attempt log.

Storage problems never stop an attempt. Limit checks fail open, and
writes that fail are logged while the caller still gets its entry id.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from contest_entry.database import EntryStore
from contest_entry.models import EntryFrequency, EntryLimitRecord, EntryResult, EntryStatus
from contest_entry.utils.helpers import new_entry_id, utc_now


class EntryRecorder:
    """Async facade over EntryStore with the degrade-on-error policy."""

    def __init__(self, store: EntryStore, clock: Callable[[], datetime] = utc_now):
        """
        Args:
            store: Database operations
            clock: Returns the current naive UTC time (injectable for tests)
        """
        self.store = store
        self.clock = clock

    async def check_entry_limit(self, contest_id: str, profile_id: str) -> bool:
        """True if the profile may enter the contest now. Fails open."""
        try:
            eligible = self.store.is_eligible(contest_id, profile_id, self.clock())
        except SQLAlchemyError as e:
            logger.error(f"❌ Entry limit check failed, allowing entry: {e}")
            return True
        if not eligible:
            logger.debug(f"Entry limit not yet cleared for {contest_id}/{profile_id}")
        return eligible

    async def update_entry_limit(self, contest_id: str, profile_id: str,
                                 frequency: EntryFrequency = EntryFrequency.ONCE) -> Optional[EntryLimitRecord]:
        """Record a successful entry against the contest's cadence."""
        try:
            limit = self.store.upsert_entry_limit(contest_id, profile_id, frequency, self.clock())
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to update entry limit for {contest_id}/{profile_id}: {e}")
            return None
        next_at = limit.next_eligible_at.isoformat() if limit and limit.next_eligible_at else "never"
        logger.debug(f"Entry limit updated ({EntryFrequency(frequency).value}), next eligible: {next_at}")
        return limit

    async def record(self, result: EntryResult) -> str:
        """Persist one attempt. Always returns an id, even if the write failed."""
        if not result.entry_id:
            result.entry_id = new_entry_id()
        try:
            self.store.add_entry(result, self.clock())
            logger.debug(f"Entry {result.entry_id[:8]} recorded ({result.status.value})")
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to record entry {result.entry_id[:8]}, entry data may be lost: {e}")
        return result.entry_id

    async def update_status(self, entry_id: str, status: EntryStatus, message: Optional[str] = None,
                            screenshot_path: Optional[str] = None) -> bool:
        try:
            return self.store.update_entry_status(entry_id, status, self.clock(), message, screenshot_path)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to update entry {entry_id[:8]} status: {e}")
            return False

    async def get_entry(self, entry_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self.store.get_entry(entry_id)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load entry {entry_id[:8]}: {e}")
            return None

    async def get_entries_for_contest(self, contest_id: str) -> List[Dict[str, Any]]:
        try:
            return self.store.get_entries(contest_id=contest_id)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load entries for contest {contest_id}: {e}")
            return []

    async def get_entries_for_profile(self, profile_id: str) -> List[Dict[str, Any]]:
        try:
            return self.store.get_entries(profile_id=profile_id)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load entries for profile {profile_id}: {e}")
            return []

    async def get_entry_limit(self, contest_id: str, profile_id: str) -> Optional[EntryLimitRecord]:
        try:
            return self.store.get_entry_limit(contest_id, profile_id)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load entry limit for {contest_id}/{profile_id}: {e}")
            return None

    async def get_entry_stats(self) -> Dict[str, int]:
        try:
            return self.store.get_entry_stats()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load entry stats: {e}")
            return {}
