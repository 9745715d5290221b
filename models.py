from flask_sqlalchemy import SQLAlchemy

from analytics.gamification import level_for

db = SQLAlchemy()

class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

class Account(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    atype = db.Column(db.String(20), nullable=False)  # 'bank', 'cash', 'credit', 'investment'
    initial_balance = db.Column(db.Float, nullable=False, default=0.0)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'type': self.atype, 'initial_balance': self.initial_balance}

class Category(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    ttype = db.Column(db.String(20), nullable=False)  # 'income' or 'expense'
    color = db.Column(db.String(20), nullable=True)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'type': self.ttype, 'color': self.color}

class Transaction(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey('account.id'), nullable=False, index=True)
    # nulled when the category is deleted
    category_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=True, index=True)
    amount = db.Column(db.Float, nullable=False)  # always positive
    ttype = db.Column(db.String(20), nullable=False)  # 'income' or 'expense'
    date = db.Column(db.BigInteger, nullable=False, index=True)  # epoch millis
    note = db.Column(db.Text, nullable=True)
    receipt_id = db.Column(db.String(255), nullable=True)
    mood = db.Column(db.String(20), nullable=True)
    is_subscription = db.Column(db.Boolean, nullable=False, default=False)

    category = db.relationship('Category', lazy='joined')
    account = db.relationship('Account', lazy='joined')

    def to_dict(self, enriched=False):
        data = {
            'id': self.id,
            'account_id': self.account_id,
            'category_id': self.category_id,
            'amount': self.amount,
            'type': self.ttype,
            'date': self.date,
            'note': self.note or '',
            'receipt_id': self.receipt_id,
            'mood': self.mood,
            'is_subscription': bool(self.is_subscription),
        }
        if enriched:
            data['category'] = self.category.to_dict() if self.category else None
            data['account'] = self.account.to_dict() if self.account else None
        return data

class Goal(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    target_amount = db.Column(db.Float, nullable=False)
    current_amount = db.Column(db.Float, nullable=False, default=0.0)
    deadline = db.Column(db.BigInteger, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='active')  # 'active' or 'completed'
    category = db.Column(db.String(100), nullable=True)

    def to_dict(self):
        return {
            'id': self.id, 'name': self.name, 'target_amount': self.target_amount,
            'current_amount': self.current_amount, 'deadline': self.deadline,
            'status': self.status, 'category': self.category,
        }

class SavingsJar(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    target_amount = db.Column(db.Float, nullable=False)
    current_amount = db.Column(db.Float, nullable=False, default=0.0)
    color = db.Column(db.String(20), nullable=False)
    emoji = db.Column(db.String(16), nullable=False)
    deadline = db.Column(db.BigInteger, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='active')

    def to_dict(self):
        return {
            'id': self.id, 'name': self.name, 'target_amount': self.target_amount,
            'current_amount': self.current_amount, 'color': self.color, 'emoji': self.emoji,
            'deadline': self.deadline, 'status': self.status,
        }

class Achievement(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    atype = db.Column(db.String(40), nullable=False)
    title = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    unlocked_at = db.Column(db.BigInteger, nullable=False)
    points = db.Column(db.Integer, nullable=False)

    def to_dict(self):
        return {
            'id': self.id, 'type': self.atype, 'title': self.title, 'description': self.description,
            'unlocked_at': self.unlocked_at, 'points': self.points,
        }

class UserProgress(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, unique=True)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    savings_streak = db.Column(db.Integer, nullable=False, default=0)  # consecutive months with positive savings
    transaction_count = db.Column(db.Integer, nullable=False, default=0)
    last_activity_date = db.Column(db.BigInteger, nullable=True)

    @property
    def level(self):
        return level_for(self.total_points or 0)

    def to_dict(self):
        return {
            'total_points': self.total_points, 'level': self.level,
            'savings_streak': self.savings_streak, 'transaction_count': self.transaction_count,
            'last_activity_date': self.last_activity_date,
        }

class MoodLog(db.Model):
    __table_args__ = (db.UniqueConstraint('user_id', 'date', name='uq_mood_user_day'),)
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    date = db.Column(db.BigInteger, nullable=False)  # midnight of the logged day
    mood = db.Column(db.String(20), nullable=False)
    spending_amount = db.Column(db.Float, nullable=False, default=0.0)
    note = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            'id': self.id, 'date': self.date, 'mood': self.mood,
            'spending_amount': self.spending_amount, 'note': self.note or '',
        }

class BankConnection(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    bank_name = db.Column(db.String(120), nullable=False)
    account_number = db.Column(db.String(32), nullable=False)  # masked
    provider = db.Column(db.String(40), nullable=False)  # 'upi', 'setu', 'razorpayx', ...
    status = db.Column(db.String(20), nullable=False, default='connected')
    last_synced_at = db.Column(db.BigInteger, nullable=True)

    def to_dict(self):
        return {
            'id': self.id, 'bank_name': self.bank_name, 'account_number': self.account_number,
            'provider': self.provider, 'status': self.status, 'last_synced_at': self.last_synced_at,
        }

class Challenge(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    ctype = db.Column(db.String(20), nullable=False)  # 'daily' or 'weekly'
    difficulty = db.Column(db.String(20), nullable=False)
    points = db.Column(db.Integer, nullable=False)
    requirement = db.Column(db.Text, nullable=False)  # JSON
    status = db.Column(db.String(20), nullable=False, default='active', index=True)
    expires_at = db.Column(db.BigInteger, nullable=False)
    completed_at = db.Column(db.BigInteger, nullable=True)

    def to_dict(self):
        return {
            'id': self.id, 'title': self.title, 'description': self.description, 'type': self.ctype,
            'difficulty': self.difficulty, 'points': self.points, 'requirement': self.requirement,
            'status': self.status, 'expires_at': self.expires_at, 'completed_at': self.completed_at,
        }

class Lesson(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(40), nullable=False, index=True)
    difficulty = db.Column(db.String(20), nullable=False)
    content = db.Column(db.Text, nullable=False)
    estimated_minutes = db.Column(db.Integer, nullable=False)
    points = db.Column(db.Integer, nullable=False)
    order = db.Column(db.Integer, nullable=False)

    def to_dict(self):
        return {
            'id': self.id, 'title': self.title, 'description': self.description,
            'category': self.category, 'difficulty': self.difficulty, 'content': self.content,
            'estimated_minutes': self.estimated_minutes, 'points': self.points, 'order': self.order,
        }

class UserLesson(db.Model):
    __table_args__ = (db.UniqueConstraint('user_id', 'lesson_id', name='uq_user_lesson'),)
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    lesson_id = db.Column(db.Integer, db.ForeignKey('lesson.id'), nullable=False)
    progress = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default='not_started')
    completed_at = db.Column(db.BigInteger, nullable=True)
    points_earned = db.Column(db.Integer, nullable=False, default=0)

    lesson = db.relationship('Lesson', lazy='joined', innerjoin=True)

    def to_dict(self):
        return {
            'id': self.id, 'lesson_id': self.lesson_id, 'progress': self.progress,
            'status': self.status, 'completed_at': self.completed_at,
            'points_earned': self.points_earned,
            'lesson': self.lesson.to_dict() if self.lesson else None,
        }
