import logging
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.meeting import MeetingAvailability, MeetingDocument
from ..schemas.meeting import Meeting
from ..services.errors import MeetingNotFoundError, StaleSnapshotError, ValidationError

logger = logging.getLogger(__name__)


class SqlMeetingStore:
    """Meeting store backed by SQLAlchemy.

    The meeting document lives in ``meetings`` with an integer version used
    for compare-and-swap. Availability rows are keyed by (meeting, user), so
    one user's submission never rewrites another's; each such write still
    bumps the meeting version so readers can order snapshots.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(self, meeting: Meeting) -> int:
        row = MeetingDocument(
            meeting_id=meeting.id,
            version=1,
            owner_id=meeting.owner_id,
            document=meeting.to_document(),
        )
        try:
            self.db.add(row)
            for user_id, slots in meeting.availability.items():
                self.db.add(
                    MeetingAvailability(
                        meeting_id=meeting.id, user_id=user_id, slot_ids=sorted(slots)
                    )
                )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ValidationError(f"Meeting {meeting.id} already exists") from exc
        except SQLAlchemyError as exc:
            logger.error("Database error creating meeting %s: %s", meeting.id, exc)
            self.db.rollback()
            raise
        return 1

    def _availability(self, meeting_id: str) -> Dict[str, FrozenSet[str]]:
        rows = self.db.scalars(
            select(MeetingAvailability).where(MeetingAvailability.meeting_id == meeting_id)
        ).all()
        return {row.user_id: frozenset(row.slot_ids or []) for row in rows}

    def load(self, meeting_id: str) -> Optional[Tuple[int, Meeting]]:
        row = self.db.get(MeetingDocument, meeting_id, populate_existing=True)
        if row is None:
            return None
        meeting = Meeting.from_document(row.document, self._availability(meeting_id))
        return row.version, meeting

    def compare_and_swap(self, meeting_id: str, expected_version: int, meeting: Meeting) -> int:
        new_version = expected_version + 1
        try:
            result = self.db.execute(
                update(MeetingDocument)
                .where(
                    MeetingDocument.meeting_id == meeting_id,
                    MeetingDocument.version == expected_version,
                )
                .values(version=new_version, document=meeting.to_document())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                if self.db.get(MeetingDocument, meeting_id) is None:
                    raise MeetingNotFoundError()
                raise StaleSnapshotError()
            members = [p.user_id for p in meeting.participants]
            stale_rows = self.db.scalars(
                select(MeetingAvailability).where(
                    MeetingAvailability.meeting_id == meeting_id,
                    MeetingAvailability.user_id.not_in(members),
                )
            ).all()
            for stale in stale_rows:
                self.db.delete(stale)
            self.db.commit()
        except SQLAlchemyError as exc:
            logger.error("Database error committing meeting %s: %s", meeting_id, exc)
            self.db.rollback()
            raise
        return new_version

    def write_availability(
        self, meeting_id: str, user_id: str, slot_ids: Iterable[str]
    ) -> int:
        try:
            result = self.db.execute(
                update(MeetingDocument)
                .where(MeetingDocument.meeting_id == meeting_id)
                .values(version=MeetingDocument.version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise MeetingNotFoundError()
            new_version = self.db.scalar(
                select(MeetingDocument.version).where(
                    MeetingDocument.meeting_id == meeting_id
                )
            )
            entry = self.db.get(MeetingAvailability, (meeting_id, user_id))
            if entry is None:
                entry = MeetingAvailability(meeting_id=meeting_id, user_id=user_id)
                self.db.add(entry)
            entry.slot_ids = sorted(set(slot_ids))
            self.db.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "Database error writing availability for meeting %s: %s", meeting_id, exc
            )
            self.db.rollback()
            raise
        return int(new_version)
