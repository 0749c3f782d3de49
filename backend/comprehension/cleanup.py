from __future__ import annotations
from datetime import datetime, timedelta
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import ProfileEntry
from .progress import KEY_PREFIX


def purge_stale_checkpoints(db: Session, max_age_days: int = 7) -> int:
	if max_age_days <= 0:
		return 0
	threshold = datetime.utcnow() - timedelta(days=max_age_days)
	# Only unfinished-session checkpoints expire; history and cached questions stay
	res = db.execute(
		delete(ProfileEntry).where(
			ProfileEntry.key.startswith(KEY_PREFIX),
			ProfileEntry.updated_at < threshold,
		)
	)
	db.commit()
	return res.rowcount or 0
