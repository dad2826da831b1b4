"""
Review scheduler.

Two independent periodic tasks share one store:

* advancement: moves overdue `reviewing` topics into `today`, never letting a
  user's `today` column grow past the daily cap. Overflow waits for a later
  cycle.
* streak decay: resets the current streak of users who skipped a day.

`ReviewScheduler` owns the threads that drive both tasks. The task functions
themselves take a session and can be called from request handlers or tests.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import func, text, update

from constants import REVIEWING, TODAY
from models import utcnow
from models.topic import ReviewEntry, Topic
from models.user import UserStats

logger = logging.getLogger(__name__)


class SchedulerStartupError(RuntimeError):
    pass


@dataclass
class AdvancementResult:
    admitted: int = 0
    deferred: int = 0
    admitted_by_user: dict = field(default_factory=dict)


def advance_overdue_cards(session, now: datetime, daily_cap: int) -> AdvancementResult:
    """Admit overdue topics into `today` up to the cap. The caller commits."""
    overdue = session.query(Topic.id, Topic.user_id) \
        .filter(Topic.column_name == REVIEWING,
                Topic.next_review_at.isnot(None),
                Topic.next_review_at <= now) \
        .order_by(Topic.created_at.asc(), Topic.id.asc()) \
        .all()
    result = AdvancementResult()
    if not overdue:
        return result

    user_ids = sorted({user_id for _, user_id in overdue})
    # serialises concurrent cycles per user on stores that support row locks
    session.query(UserStats.user_id) \
        .filter(UserStats.user_id.in_(user_ids)) \
        .with_for_update() \
        .all()
    today_counts = dict(
        session.query(Topic.user_id, func.count(Topic.id))
        .filter(Topic.column_name == TODAY, Topic.user_id.in_(user_ids))
        .group_by(Topic.user_id)
        .all()
    )

    slots = {user_id: max(0, daily_cap - today_counts.get(user_id, 0)) for user_id in user_ids}
    admitted = []
    for topic_id, user_id in overdue:
        if slots[user_id] > 0:
            slots[user_id] -= 1
            admitted.append(topic_id)
            result.admitted_by_user[user_id] = result.admitted_by_user.get(user_id, 0) + 1
        else:
            result.deferred += 1

    if not admitted:
        return result

    moved = session.execute(
        update(Topic)
        .where(Topic.id.in_(admitted), Topic.column_name == REVIEWING)
        .values(column_name=TODAY, next_review_at=None, updated_at=now)
        .execution_options(synchronize_session=False)
    ).rowcount
    if moved != len(admitted):
        raise RuntimeError(f"expected to move {len(admitted)} topics, moved {moved}")

    session.add_all([
        ReviewEntry(topic_id=topic_id, reviewed_at=now, from_column=REVIEWING, to_column=TODAY)
        for topic_id in admitted
    ])
    result.admitted = len(admitted)
    return result


def decay_streaks(session, today) -> int:
    """Reset streaks of users whose last study day is before yesterday. The caller commits."""
    yesterday = today - timedelta(days=1)
    return session.execute(
        update(UserStats)
        .where(UserStats.last_study_date < yesterday, UserStats.current_streak > 0)
        .values(current_streak=0)
        .execution_options(synchronize_session=False)
    ).rowcount


def seconds_until_midnight(now: datetime) -> float:
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max(1.0, (tomorrow - now).total_seconds())


class ReviewScheduler:
    def __init__(self, session_factory, daily_cap, check_interval=300, clock=utcnow):
        self.session_factory = session_factory
        self.daily_cap = daily_cap
        self.check_interval = check_interval
        self.clock = clock
        self._stop = threading.Event()
        self._threads = []

    @property
    def running(self):
        return any(t.is_alive() for t in self._threads)

    def _transaction(self, work):
        with self.session_factory() as session:
            try:
                result = work(session)
                session.commit()
            except Exception:
                session.rollback()
                raise
        return result

    def run_advancement_cycle(self) -> AdvancementResult:
        now = self.clock()
        result = self._transaction(lambda s: advance_overdue_cards(s, now, self.daily_cap))
        if result.admitted:
            logger.info("Moved %d overdue topics to 'today' (%d deferred by the daily cap)",
                        result.admitted, result.deferred)
        elif result.deferred:
            logger.info("Daily cap reached, %d overdue topics deferred", result.deferred)
        return result

    def run_streak_decay(self) -> int:
        today = self.clock().date()
        reset = self._transaction(lambda s: decay_streaks(s, today))
        if reset:
            logger.info("Reset %d streaks inactive since before %s", reset, today - timedelta(days=1))
        return reset

    def check_store(self):
        try:
            with self.session_factory() as session:
                session.execute(text("SELECT 1"))
        except Exception as exc:
            raise SchedulerStartupError(f"Store unreachable, review scheduler not started: {exc}") from exc

    def _run_safely(self, name, task):
        try:
            task()
        except Exception:
            logger.exception("Review scheduler task %s failed, retrying next tick", name)

    def _loop(self, name, task, next_delay):
        while not self._stop.wait(next_delay()):
            self._run_safely(name, task)

    def start(self):
        if self.running:
            return
        self.check_store()
        self._stop.clear()
        # catch up on whatever happened while the process was down
        self._run_safely("streak-decay", self.run_streak_decay)
        self._run_safely("advancement", self.run_advancement_cycle)

        self._threads = [
            threading.Thread(target=self._loop, name="review-advancement", daemon=True,
                             args=("advancement", self.run_advancement_cycle,
                                   lambda: self.check_interval)),
            threading.Thread(target=self._loop, name="streak-decay", daemon=True,
                             args=("streak-decay", self.run_streak_decay,
                                   lambda: seconds_until_midnight(self.clock()))),
        ]
        for t in self._threads:
            t.start()
        logger.info("Review scheduler started, checking every %s seconds (daily cap %s)",
                    self.check_interval, self.daily_cap)

    def stop(self, timeout=None):
        self._stop.set()
        for t in self._threads:
            t.join(timeout)
        self._threads = []
        logger.info("Review scheduler stopped")
