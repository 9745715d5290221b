"""Point awards, levels and the per-user progress aggregate.

Progress is modelled as an immutable ``ProgressState``; every change goes
through ``apply_event`` which returns a new state. The services layer
loads the stored row, applies the event and writes the result back while
holding the row lock.
"""
from dataclasses import dataclass, replace
from typing import Optional

POINTS_PER_LEVEL = 500

FIRST_TRANSACTION_POINTS = 50
GOAL_COMPLETED_POINTS = 100
JAR_COMPLETED_POINTS = 200


def level_for(points: int) -> int:
    return points // POINTS_PER_LEVEL + 1


@dataclass(frozen=True)
class Award:
    """An achievement to append to the user's log."""
    kind: str
    title: str
    description: str
    points: int


@dataclass(frozen=True)
class TransactionRecorded:
    at: int


@dataclass(frozen=True)
class ProgressState:
    total_points: int = 0
    savings_streak: int = 0
    transaction_count: int = 0
    last_activity_date: Optional[int] = None

    @property
    def level(self) -> int:
        return level_for(self.total_points)


def apply_event(state: ProgressState, event) -> ProgressState:
    if isinstance(event, Award):
        return replace(state, total_points=state.total_points + event.points)
    if isinstance(event, TransactionRecorded):
        return replace(state, transaction_count=state.transaction_count + 1, last_activity_date=event.at)
    raise TypeError(f'unknown progress event: {event!r}')


def first_transaction_award():
    return Award('first_transaction', 'First Step!', 'Recorded your first transaction', FIRST_TRANSACTION_POINTS)


def goal_completed_award(goal_name):
    return Award('goal_completed', 'Goal Achieved!', f'Completed goal: {goal_name}', GOAL_COMPLETED_POINTS)


def jar_completed_award(jar_name):
    return Award('savings_jar_completed', 'Savings Goal Achieved!', f'Filled your {jar_name} jar!', JAR_COMPLETED_POINTS)


def lesson_completed_award(lesson_title, points):
    return Award('lesson_completed', 'Knowledge Gained!', f'Completed lesson: {lesson_title}', points)


def challenge_completed_award(challenge_title, points):
    return Award('challenge_completed', 'Challenge Complete!', f'Completed: {challenge_title}', points)


def contribute(current: float, target: float, status: str, amount: float):
    """Add ``amount`` towards a target.

    Returns ``(new_amount, new_status, just_completed)``. A completed
    target stays completed whatever the new amount is, and
    ``just_completed`` is true only on the active -> completed transition.
    """
    new_amount = current + amount
    if status == 'completed':
        return new_amount, 'completed', False
    if new_amount >= target:
        return new_amount, 'completed', True
    return new_amount, 'active', False


def lesson_status(progress: int, previous: Optional[str] = None) -> str:
    if previous == 'completed' or progress >= 100:
        return 'completed'
    if progress == 0:
        return 'not_started'
    return 'in_progress'
