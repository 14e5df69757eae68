"""
Subscription Day Repository - Data access layer for subscription days

Every status write is a compare-and-swap keyed on the status the caller
observed; losers get False and must re-read to learn who won.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Tuple
from uuid import UUID
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import Subscription, SubscriptionDay
from domain.enums import DayStatus, SubscriptionStatus


def _values(statuses) -> List[str]:
    if isinstance(statuses, (str, DayStatus)):
        statuses = [statuses]
    return [DayStatus(s).value for s in statuses]


class DayRepository(BaseRepository[SubscriptionDay]):
    """Repository for subscription day data access"""

    def __init__(self, db: Session):
        super().__init__(db, SubscriptionDay)

    def get_by_id(self, day_id: UUID, with_lock: bool = False) -> Optional[SubscriptionDay]:
        """Get day by ID"""
        query = self.db.query(SubscriptionDay).filter(SubscriptionDay.day_id == day_id)
        if with_lock:
            # Locked reads must see the committed row, not a stale identity-map copy
            query = query.with_for_update().populate_existing()
        return query.first()

    def get_for_date(
        self, subscription_id: UUID, day_date: date, with_lock: bool = False
    ) -> Optional[SubscriptionDay]:
        """Get the day of a subscription for a calendar date"""
        query = self.db.query(SubscriptionDay).filter(
            SubscriptionDay.subscription_id == subscription_id,
            SubscriptionDay.date == day_date,
        )
        if with_lock:
            query = query.with_for_update().populate_existing()
        return query.first()

    def list_for_subscription(
        self,
        subscription_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[SubscriptionDay]:
        """List a subscription's days ordered by date"""
        query = self.db.query(SubscriptionDay).filter(
            SubscriptionDay.subscription_id == subscription_id
        )
        if date_from is not None:
            query = query.filter(SubscriptionDay.date >= date_from)
        if date_to is not None:
            query = query.filter(SubscriptionDay.date <= date_to)
        return query.order_by(SubscriptionDay.date).all()

    def list_by_date(
        self, day_date: date, statuses: Optional[Iterable] = None
    ) -> List[SubscriptionDay]:
        """Kitchen view: all days for a date, optionally filtered by status"""
        query = self.db.query(SubscriptionDay).filter(SubscriptionDay.date == day_date)
        if statuses:
            query = query.filter(SubscriptionDay.status.in_(_values(statuses)))
        return query.order_by(SubscriptionDay.created_at).all()

    def list_open_for_date(self, day_date: date) -> List[SubscriptionDay]:
        """Open days on active subscriptions for a date"""
        return (
            self.db.query(SubscriptionDay)
            .join(Subscription, Subscription.subscription_id == SubscriptionDay.subscription_id)
            .filter(
                SubscriptionDay.date == day_date,
                SubscriptionDay.status == DayStatus.OPEN.value,
                Subscription.status == SubscriptionStatus.ACTIVE.value,
            )
            .order_by(SubscriptionDay.created_at)
            .all()
        )

    def has_days(self, subscription_id: UUID) -> bool:
        return (
            self.db.query(SubscriptionDay.day_id)
            .filter(SubscriptionDay.subscription_id == subscription_id)
            .first()
            is not None
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_day(
        self, subscription_id: UUID, day_date: date, **fields
    ) -> Optional[SubscriptionDay]:
        """
        Insert a day inside a savepoint.

        Returns None if another writer already created the (subscription, date)
        row; the enclosing transaction is left intact.
        """
        day = SubscriptionDay(subscription_id=subscription_id, date=day_date, **fields)
        try:
            with self.db.begin_nested():
                self.db.add(day)
                self.db.flush()
        except IntegrityError:
            return None
        return day

    def get_or_create(
        self, subscription_id: UUID, day_date: date, with_lock: bool = False
    ) -> Tuple[SubscriptionDay, bool]:
        """Get the day for a date, creating an open one if absent"""
        day = self.get_for_date(subscription_id, day_date, with_lock=with_lock)
        if day is not None:
            return day, False
        created = self.create_day(subscription_id, day_date, status=DayStatus.OPEN.value)
        if created is not None:
            return created, True
        # Race - another request created it
        return self.get_for_date(subscription_id, day_date, with_lock=with_lock), False

    def bulk_create_calendar(
        self, subscription_id: UUID, start_date: date, days_count: int
    ) -> List[SubscriptionDay]:
        """Create one open day per plan day starting at ``start_date``"""
        days = [
            SubscriptionDay(
                subscription_id=subscription_id,
                date=start_date + timedelta(days=offset),
                status=DayStatus.OPEN.value,
            )
            for offset in range(days_count)
        ]
        self.db.add_all(days)
        self.db.flush()
        return days

    # ------------------------------------------------------------------
    # Guarded writes
    # ------------------------------------------------------------------

    def transition(
        self, day_id: UUID, from_statuses, to_status, **values
    ) -> bool:
        """Set ``to_status`` only if the day is still in one of ``from_statuses``"""
        return self._conditional_update(
            SubscriptionDay.day_id == day_id,
            SubscriptionDay.status.in_(_values(from_statuses)),
            status=DayStatus(to_status).value,
            **values,
        )

    def set_locked_snapshot(
        self, day_id: UUID, snapshot: dict, locked_at: datetime
    ) -> bool:
        """Write the locked snapshot once; False if one is already present"""
        return self._conditional_update(
            SubscriptionDay.day_id == day_id,
            SubscriptionDay.locked_snapshot.is_(None),
            locked_snapshot=snapshot,
            locked_at=locked_at,
        )

    def mark_fulfilled(
        self,
        day_id: UUID,
        observed_status: str,
        snapshot: dict,
        fulfilled_at: datetime,
    ) -> bool:
        """Fulfill the day if its status is still the one observed by the caller"""
        return self._conditional_update(
            SubscriptionDay.day_id == day_id,
            SubscriptionDay.status == DayStatus(observed_status).value,
            SubscriptionDay.status != DayStatus.FULFILLED.value,
            status=DayStatus.FULFILLED.value,
            fulfilled_at=fulfilled_at,
            credits_deducted=True,
            fulfilled_snapshot=snapshot,
        )

    def update_open_day(self, day_id: UUID, **values) -> bool:
        """Write client-editable fields only while the day is open"""
        return self._conditional_update(
            SubscriptionDay.day_id == day_id,
            SubscriptionDay.status == DayStatus.OPEN.value,
            **values,
        )

    def add_one_time_addon(self, day: SubscriptionDay, addon_id: str) -> bool:
        """
        Add an add-on id to an open day's one-time list (set semantics).

        The caller must have read ``day`` with ``with_lock=True``.
        """
        if day.status != DayStatus.OPEN.value:
            return False
        current = list(day.addons_one_time or [])
        if addon_id not in current:
            day.addons_one_time = current + [addon_id]
            self.db.flush()
        return True
