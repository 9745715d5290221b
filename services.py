import json
import logging
import math
import random

from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from analytics import gamification
from analytics.aggregation import MS_PER_DAY, day_start, spending_on_day, to_millis, utc_now
from errors import InvalidOperation, Unauthorized
from models import (db, User, Account, Category, Transaction, Goal, SavingsJar, Achievement, UserProgress,
                    MoodLog, BankConnection, Challenge, Lesson, UserLesson)

logger = logging.getLogger(__name__)

ACCOUNT_TYPES = ('bank', 'cash', 'credit', 'investment')
KINDS = ('income', 'expense')
MOODS = ('happy', 'neutral', 'sad', 'stressed', 'excited')
MAX_ACTIVE_CHALLENGES = 3

CHALLENGE_TEMPLATES = [
    {'title': 'Budget Master', 'description': 'Create a transaction in 3 different categories',
     'ctype': 'daily', 'difficulty': 'easy', 'points': 50, 'requirement': {'type': 'categories', 'count': 3}},
    {'title': 'Savings Streak', 'description': 'Record 5 income transactions this week',
     'ctype': 'weekly', 'difficulty': 'medium', 'points': 100, 'requirement': {'type': 'income', 'count': 5}},
    {'title': 'Goal Setter', 'description': 'Create and fund a new financial goal',
     'ctype': 'daily', 'difficulty': 'easy', 'points': 75, 'requirement': {'type': 'goal', 'action': 'create_and_fund'}},
    {'title': 'Transaction Tracker', 'description': 'Log 10 transactions with receipts',
     'ctype': 'weekly', 'difficulty': 'hard', 'points': 150, 'requirement': {'type': 'receipts', 'count': 10}},
    {'title': 'Category Champion', 'description': 'Stay under budget in Food category',
     'ctype': 'daily', 'difficulty': 'medium', 'points': 80, 'requirement': {'type': 'budget', 'category': 'Food'}},
]

LESSONS = [
    {'title': 'Budgeting Basics', 'description': 'Learn the fundamentals of creating and maintaining a budget',
     'category': 'budgeting', 'difficulty': 'beginner', 'estimated_minutes': 10, 'points': 50, 'order': 1,
     'content': 'A budget is a plan for your money. Learn the 50/30/20 rule: 50% needs, 30% wants, 20% savings...'},
    {'title': 'Emergency Fund Essentials', 'description': 'Why you need an emergency fund and how to build one',
     'category': 'saving', 'difficulty': 'beginner', 'estimated_minutes': 15, 'points': 75, 'order': 2,
     'content': 'An emergency fund is 3-6 months of expenses saved for unexpected situations...'},
    {'title': 'Understanding Credit Scores', 'description': 'What affects your credit score and how to improve it',
     'category': 'debt', 'difficulty': 'intermediate', 'estimated_minutes': 20, 'points': 100, 'order': 3,
     'content': 'Your credit score ranges from 300-850 and affects loan rates...'},
    {'title': 'Investment Fundamentals', 'description': 'Introduction to stocks, bonds, and mutual funds',
     'category': 'investing', 'difficulty': 'intermediate', 'estimated_minutes': 25, 'points': 125, 'order': 4,
     'content': 'Investing helps your money grow over time through compound interest...'},
    {'title': 'Tax Planning Strategies', 'description': 'Learn how to minimize taxes and maximize deductions',
     'category': 'taxes', 'difficulty': 'advanced', 'estimated_minutes': 30, 'points': 150, 'order': 5,
     'content': 'Understanding tax brackets and deductions can save you thousands...'},
]


def now_millis():
    return to_millis(utc_now())


# ---------------------- Helpers ----------------------
def _owned(model, record_id, user_id, lock=False):
    """Fetch a record the user owns, optionally under a row lock."""
    query = db.select(model).filter_by(id=record_id)
    if lock:
        query = query.with_for_update()
    record = db.session.execute(query).scalar_one_or_none()
    if record is None or record.user_id != user_id:
        raise Unauthorized()
    return record


def _amount(value, allow_zero=True):
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InvalidOperation('Amount must be a number.')
    if not math.isfinite(amount):
        raise InvalidOperation('Amount must be a finite number.')
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidOperation('Amount must be zero or positive.' if allow_zero else 'Amount must be positive.')
    return amount


def _balance(value):
    try:
        balance = float(value)
    except (TypeError, ValueError):
        raise InvalidOperation('Initial balance must be a number.')
    if not math.isfinite(balance):
        raise InvalidOperation('Initial balance must be a finite number.')
    return balance


def _millis(value):
    # bool is an int subclass but never a timestamp
    if isinstance(value, bool):
        raise InvalidOperation('Date must be epoch milliseconds.')
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidOperation('Date must be epoch milliseconds.')


def _kind(value):
    if value not in KINDS:
        raise InvalidOperation('Type must be income or expense.')
    return value


def _progress_for_update(user_id):
    progress = db.session.execute(
        db.select(UserProgress).filter_by(user_id=user_id).with_for_update()
    ).scalar_one_or_none()
    if progress is None:
        progress = UserProgress(user_id=user_id, total_points=0, savings_streak=0, transaction_count=0)
        db.session.add(progress)
        db.session.flush()
    return progress


def _apply(progress, event):
    state = gamification.ProgressState(
        total_points=progress.total_points,
        savings_streak=progress.savings_streak,
        transaction_count=progress.transaction_count,
        last_activity_date=progress.last_activity_date,
    )
    new = gamification.apply_event(state, event)
    progress.total_points = new.total_points
    progress.savings_streak = new.savings_streak
    progress.transaction_count = new.transaction_count
    progress.last_activity_date = new.last_activity_date
    return new


def _award(user_id, award, progress=None):
    progress = progress or _progress_for_update(user_id)
    db.session.add(Achievement(user_id=user_id, atype=award.kind, title=award.title,
                               description=award.description, unlocked_at=now_millis(), points=award.points))
    state = _apply(progress, award)
    logger.info('Awarded %s (%d points) to user %s, now level %d', award.kind, award.points, user_id, state.level)
    return state


# ---------------------- Users ----------------------
def register_user(name, email, password):
    name, email = (name or '').strip(), (email or '').lower().strip()
    if not name or not email or not password:
        raise InvalidOperation('All fields are required.')
    if User.query.filter_by(email=email).first():
        raise InvalidOperation('Email already registered.')
    user = User(name=name, email=email, password_hash=generate_password_hash(password))
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email, password):
    user = User.query.filter_by(email=(email or '').lower().strip()).first()
    if not user or not check_password_hash(user.password_hash, password or ''):
        raise Unauthorized('Invalid credentials.')
    return user


def get_progress(user_id):
    """Read-only; users with no activity get an unsaved zero row."""
    progress = UserProgress.query.filter_by(user_id=user_id).first()
    if progress is None:
        progress = UserProgress(user_id=user_id, total_points=0, savings_streak=0, transaction_count=0)
    return progress


# ---------------------- Accounts ----------------------
def create_account(user_id, name, atype, initial_balance):
    if atype not in ACCOUNT_TYPES:
        raise InvalidOperation('Account type must be one of: ' + ', '.join(ACCOUNT_TYPES) + '.')
    account = Account(user_id=user_id, name=name, atype=atype, initial_balance=_balance(initial_balance))
    db.session.add(account)
    db.session.commit()
    return account


def update_account(user_id, account_id, name, atype, initial_balance):
    account = _owned(Account, account_id, user_id)
    if atype not in ACCOUNT_TYPES:
        raise InvalidOperation('Account type must be one of: ' + ', '.join(ACCOUNT_TYPES) + '.')
    account.initial_balance = _balance(initial_balance)
    account.name = name
    account.atype = atype
    db.session.commit()
    return account


def delete_account(user_id, account_id):
    account = _owned(Account, account_id, user_id)
    if Transaction.query.filter_by(account_id=account.id).first() is not None:
        logger.warning('Refused to delete account %s: transactions still reference it', account.id)
        raise InvalidOperation('Cannot delete account with existing transactions')
    db.session.delete(account)
    db.session.commit()


# ---------------------- Categories ----------------------
def create_category(user_id, name, ttype, color=None):
    category = Category(user_id=user_id, name=name, ttype=_kind(ttype), color=color)
    db.session.add(category)
    db.session.commit()
    return category


def delete_category(user_id, category_id):
    category = _owned(Category, category_id, user_id)
    orphaned = Transaction.query.filter_by(category_id=category.id).update({'category_id': None})
    if orphaned:
        logger.info('Deleted category %s; %d transactions left uncategorized', category.id, orphaned)
    db.session.delete(category)
    db.session.commit()


# ---------------------- Transactions ----------------------
def list_transactions(user_id, limit=100):
    return (Transaction.query.filter_by(user_id=user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .limit(limit).all())


def create_transaction(user_id, account_id, category_id, amount, ttype, date=None, note=None,
                       receipt_id=None, mood=None, is_subscription=False):
    _owned(Account, account_id, user_id)
    _owned(Category, category_id, user_id)
    if mood is not None and mood not in MOODS:
        raise InvalidOperation('Unknown mood.')
    txn = Transaction(user_id=user_id, account_id=account_id, category_id=category_id,
                      amount=_amount(amount), ttype=_kind(ttype),
                      date=_millis(date) if date is not None else now_millis(), note=note,
                      receipt_id=receipt_id, mood=mood, is_subscription=bool(is_subscription))
    db.session.add(txn)

    progress = _progress_for_update(user_id)
    state = _apply(progress, gamification.TransactionRecorded(at=now_millis()))
    if state.transaction_count == 1:
        _award(user_id, gamification.first_transaction_award(), progress)
    db.session.commit()
    return txn


def delete_transaction(user_id, transaction_id):
    txn = _owned(Transaction, transaction_id, user_id)
    db.session.delete(txn)
    db.session.commit()


def toggle_subscription(user_id, transaction_id, is_subscription):
    txn = _owned(Transaction, transaction_id, user_id)
    txn.is_subscription = bool(is_subscription)
    db.session.commit()
    return txn


# ---------------------- Goals & Jars ----------------------
def create_goal(user_id, name, target_amount, deadline, category=None):
    goal = Goal(user_id=user_id, name=name, target_amount=_amount(target_amount, allow_zero=False),
                current_amount=0.0, deadline=_millis(deadline), status='active', category=category)
    db.session.add(goal)
    db.session.commit()
    return goal


def update_goal_progress(user_id, goal_id, amount):
    goal = _owned(Goal, goal_id, user_id, lock=True)
    goal.current_amount, goal.status, completed = gamification.contribute(
        goal.current_amount, goal.target_amount, goal.status, _amount(amount, allow_zero=False))
    if completed:
        _award(user_id, gamification.goal_completed_award(goal.name))
    db.session.commit()
    return goal


def delete_goal(user_id, goal_id):
    db.session.delete(_owned(Goal, goal_id, user_id))
    db.session.commit()


def create_savings_jar(user_id, name, target_amount, color, emoji, deadline=None):
    jar = SavingsJar(user_id=user_id, name=name, target_amount=_amount(target_amount, allow_zero=False),
                     current_amount=0.0, color=color, emoji=emoji,
                     deadline=_millis(deadline) if deadline is not None else None, status='active')
    db.session.add(jar)
    db.session.commit()
    return jar


def add_to_savings_jar(user_id, jar_id, amount):
    jar = _owned(SavingsJar, jar_id, user_id, lock=True)
    jar.current_amount, jar.status, completed = gamification.contribute(
        jar.current_amount, jar.target_amount, jar.status, _amount(amount, allow_zero=False))
    if completed:
        _award(user_id, gamification.jar_completed_award(jar.name))
    db.session.commit()
    return jar


def delete_savings_jar(user_id, jar_id):
    db.session.delete(_owned(SavingsJar, jar_id, user_id))
    db.session.commit()


# ---------------------- Mood ----------------------
def log_mood(user_id, mood, note=None, now=None):
    """One log per day; a second log the same day overwrites the first."""
    if mood not in MOODS:
        raise InvalidOperation('Unknown mood.')
    now = now if now is not None else utc_now()
    today = to_millis(day_start(now))
    todays = Transaction.query.filter(Transaction.user_id == user_id, Transaction.date >= today,
                                      Transaction.date < today + MS_PER_DAY).all()
    spending = spending_on_day(todays, now)

    log = _todays_mood_log(user_id, today)
    if log is None:
        log = MoodLog(user_id=user_id, date=today)
        db.session.add(log)
    log.mood, log.note, log.spending_amount = mood, note, spending
    try:
        db.session.commit()
    except IntegrityError:
        # a concurrent request inserted today's log first
        db.session.rollback()
        logger.info('Mood log for user %s on %s already exists, updating it', user_id, today)
        log = _todays_mood_log(user_id, today)
        log.mood, log.note, log.spending_amount = mood, note, spending
        db.session.commit()
    return log


def _todays_mood_log(user_id, day):
    return MoodLog.query.filter_by(user_id=user_id, date=day).with_for_update().first()


# ---------------------- Challenges ----------------------
def generate_challenges(user_id, rng=random):
    active = Challenge.query.filter_by(user_id=user_id, status='active').all()
    if len(active) >= MAX_ACTIVE_CHALLENGES:
        return {'message': f'You already have {MAX_ACTIVE_CHALLENGES} active challenges', 'created': []}

    taken = {c.title for c in active}
    available = [t for t in CHALLENGE_TEMPLATES if t['title'] not in taken]
    picked = rng.sample(available, min(MAX_ACTIVE_CHALLENGES - len(active), len(available)))

    now = now_millis()
    created = []
    for template in picked:
        lifetime = MS_PER_DAY if template['ctype'] == 'daily' else 7 * MS_PER_DAY
        challenge = Challenge(user_id=user_id, title=template['title'], description=template['description'],
                              ctype=template['ctype'], difficulty=template['difficulty'],
                              points=template['points'], requirement=json.dumps(template['requirement']),
                              status='active', expires_at=now + lifetime)
        db.session.add(challenge)
        created.append(challenge)
    db.session.commit()
    return {'message': f'Generated {len(created)} new challenges!', 'created': created}


def complete_challenge(user_id, challenge_id):
    challenge = _owned(Challenge, challenge_id, user_id, lock=True)
    if challenge.status != 'active':
        logger.warning('Challenge %s is %s, not active', challenge.id, challenge.status)
        raise InvalidOperation('Challenge is not active')
    challenge.status = 'completed'
    challenge.completed_at = now_millis()
    _award(user_id, gamification.challenge_completed_award(challenge.title, challenge.points))
    db.session.commit()
    return challenge


# ---------------------- Lessons ----------------------
def seed_lessons():
    if Lesson.query.first() is not None:
        return
    for lesson in LESSONS:
        db.session.add(Lesson(**lesson))
    db.session.commit()


def update_lesson_progress(user_id, lesson_id, progress):
    lesson = db.session.get(Lesson, lesson_id)
    if lesson is None:
        raise InvalidOperation('Lesson not found')
    try:
        progress = int(progress)
    except (TypeError, ValueError):
        raise InvalidOperation('Progress must be a number.')
    if not 0 <= progress <= 100:
        raise InvalidOperation('Progress must be between 0 and 100.')

    entry = UserLesson.query.filter_by(user_id=user_id, lesson_id=lesson.id).with_for_update().first()
    if entry is None:
        entry = UserLesson(user_id=user_id, lesson_id=lesson.id, points_earned=0)
        db.session.add(entry)
    previous = entry.status
    entry.progress = progress
    entry.status = gamification.lesson_status(progress, previous)
    if entry.status == 'completed' and previous != 'completed':
        entry.completed_at = now_millis()
        entry.points_earned = lesson.points
        _award(user_id, gamification.lesson_completed_award(lesson.title, lesson.points))
    db.session.commit()
    return entry


# ---------------------- Bank Connections ----------------------
def mask_account_number(number):
    digits = ''.join(ch for ch in str(number) if ch.isalnum())
    return '****' + digits[-4:]


def create_bank_connection(user_id, bank_name, account_number, provider):
    connection = BankConnection(user_id=user_id, bank_name=bank_name,
                                account_number=mask_account_number(account_number),
                                provider=provider, status='connected')
    db.session.add(connection)
    db.session.commit()
    return connection


def sync_bank_connection(user_id, connection_id):
    # no provider integration; syncing only stamps the connection
    connection = _owned(BankConnection, connection_id, user_id)
    connection.status = 'connected'
    connection.last_synced_at = now_millis()
    db.session.commit()
    logger.info('Stub sync of bank connection %s (%s)', connection.id, connection.provider)
    return connection


def delete_bank_connection(user_id, connection_id):
    db.session.delete(_owned(BankConnection, connection_id, user_id))
    db.session.commit()
