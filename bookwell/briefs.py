import logging
from typing import Optional

from bookwell import db
from bookwell.models import MeetingBrief
from bookwell.scheduling.collaborators import DerivedArtifactStore


log = logging.getLogger(__name__)


class BriefStore(DerivedArtifactStore):
    """Meeting-prep briefs, one per booking. Generation happens elsewhere."""

    def get(self, booking_id: int) -> Optional[MeetingBrief]:
        return MeetingBrief.query.filter_by(booking_id=booking_id).first()

    def save(self, booking_id: int, summary: str) -> MeetingBrief:
        brief = self.get(booking_id)
        if brief:
            brief.summary = summary
        else:
            brief = MeetingBrief(booking_id=booking_id, summary=summary)
            db.session.add(brief)
        db.session.commit()
        return brief

    def invalidate(self, booking_id: int) -> None:
        deleted = MeetingBrief.query.filter_by(booking_id=booking_id).delete(synchronize_session=False)
        db.session.commit()
        if deleted:
            log.info("Discarded stale brief for booking %s", booking_id)
