"""
Setting Repository - key/value configuration store

Values are stored as JSON text so compare-and-swap on the raw column works
on every backend.
"""

import json
from typing import Any, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import Setting

CUTOFF_CHECKPOINT_KEY = "cutoff_last_run"


def _encode(value: Any) -> str:
    return json.dumps(value, sort_keys=True)


class SettingRepository(BaseRepository[Setting]):
    """Repository for settings data access"""

    def __init__(self, db: Session):
        super().__init__(db, Setting)

    def get_by_id(self, key: str) -> Optional[Setting]:
        """Get setting row by key"""
        return self.db.query(Setting).filter(Setting.key == key).first()

    def get_value(self, key: str, default: Any = None) -> Any:
        """Decoded value of a setting, or ``default`` when unset"""
        row = self.get_by_id(key)
        if row is None:
            return default
        try:
            return json.loads(row.value)
        except (TypeError, ValueError):
            return default

    def set_value(self, key: str, value: Any) -> Setting:
        """Create or overwrite a setting"""
        row = self.get_by_id(key)
        if row is None:
            row = Setting(key=key, value=_encode(value))
            self.db.add(row)
        else:
            row.value = _encode(value)
        self.db.flush()
        return row

    def get_all_values(self) -> dict:
        return {row.key: json.loads(row.value) for row in self.db.query(Setting).all()}

    # ------------------------------------------------------------------
    # Daily run checkpoint
    # ------------------------------------------------------------------

    def claim_daily_run(self, run_date: str, key: str = CUTOFF_CHECKPOINT_KEY) -> bool:
        """
        Claim ``run_date`` for a once-per-day job.

        Returns True for exactly one caller per date, across processes.
        """
        encoded = _encode(run_date)
        row = self.get_by_id(key)
        if row is None:
            try:
                with self.db.begin_nested():
                    self.db.add(Setting(key=key, value=encoded))
                    self.db.flush()
                return True
            except IntegrityError:
                row = self.get_by_id(key)
                if row is None:
                    raise
        previous = row.value
        if previous == encoded:
            return False
        return self._conditional_update(
            Setting.key == key, Setting.value == previous, value=encoded
        )

    def release_daily_run(
        self, run_date: str, previous: Optional[str], key: str = CUTOFF_CHECKPOINT_KEY
    ) -> bool:
        """Give a claim back so the next tick can retry"""
        if previous is None:
            return (
                self.db.query(Setting)
                .filter(Setting.key == key, Setting.value == _encode(run_date))
                .delete(synchronize_session="fetch")
                == 1
            )
        return self._conditional_update(
            Setting.key == key,
            Setting.value == _encode(run_date),
            value=_encode(previous),
        )
