from datetime import timedelta

from constants import (
    GEMS_PER_MASTERY,
    GEMS_PER_REVIEW,
    MASTERED,
    MASTERY_SCORE,
    MASTERY_THRESHOLD,
    REVIEWING,
    SCORE_TO_INTERVAL_DAYS,
    XP_PER_MASTERY,
    XP_PER_REVIEW,
)
from models import utcnow
from models.topic import ReviewEntry
from models.user import UserStats
from services.gem_engine import earn_gems, ensure_stats


def record_study_day(stats, today):
    """Extend, restart or keep the streak for a study action on `today`."""
    last = stats.last_study_date
    if last == today:
        return stats
    if last == today - timedelta(days=1):
        stats.current_streak = (stats.current_streak or 0) + 1
    else:
        stats.current_streak = 1
    stats.longest_streak = max(stats.longest_streak or 0, stats.current_streak)
    stats.last_study_date = today
    return stats


def record_review(session, topic, score: int, now=None):
    """
    Apply a self-graded review (score 1-5) to a topic.

    Moves the topic to `reviewing` with a due date from the score table, or to
    `mastered` once enough strong reviews have accumulated. Awards XP and gems
    and updates the streak. The caller owns the commit.
    """
    now = now or utcnow()
    score = max(1, min(5, int(score)))
    from_column = topic.column_name

    before = topic.mastery_count or 0
    topic.mastery_count = before + 1 if score >= MASTERY_SCORE else before

    # only the review that crosses the threshold masters the topic
    mastered = before < MASTERY_THRESHOLD <= topic.mastery_count
    if mastered:
        topic.column_name = MASTERED
        topic.next_review_at = None
    else:
        topic.column_name = REVIEWING
        topic.next_review_at = now + timedelta(days=SCORE_TO_INTERVAL_DAYS[score])
    topic.updated_at = now

    entry = ReviewEntry(topic_id=topic.id, reviewed_at=now, from_column=from_column,
                        to_column=topic.column_name, score=score)
    session.add(entry)

    xp = XP_PER_REVIEW + (XP_PER_MASTERY if mastered else 0)
    stats = ensure_stats(session, topic.user_id)
    stats.total_xp = UserStats.total_xp + xp
    session.flush()
    record_study_day(stats, now.date())

    gems = GEMS_PER_REVIEW + (GEMS_PER_MASTERY if mastered else 0)
    earn_gems(session, topic.user_id, topic.subject.gem_type, gems,
              "topic_mastered" if mastered else "review_completed", topic_id=topic.id)

    return entry, xp, gems
