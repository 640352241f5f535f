import uuid
from datetime import datetime, timezone
from decimal import Decimal
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

MONEY = db.Numeric(10, 2, asdecimal=True)


def utcnow():
    # SQLite drops tzinfo, so rows keep naive UTC timestamps
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return str(uuid.uuid4())


def money_str(value):
    if value is None:
        return None
    return f'{Decimal(value):.2f}'


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    firebase_uid = db.Column(db.String(128), unique=True, nullable=True, index=True)
    username = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    currency = db.Column(db.String(8), nullable=False, default='GBP')
    monthly_income = db.Column(MONEY, nullable=True)
    job_title = db.Column(db.String(120), nullable=True)
    annual_salary = db.Column(MONEY, nullable=True)
    onboarding_completed = db.Column(db.Boolean, nullable=False, default=False)
    financial_profile = db.Column(db.JSON, nullable=True)
    smart_coins = db.Column(MONEY, nullable=False, default=Decimal('25'))
    daily_streak = db.Column(db.Integer, nullable=False, default=0)
    last_active_date = db.Column(db.String(10), nullable=True)  # YYYY-MM-DD
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    budgets = db.relationship('Budget', backref='user', lazy=True, cascade='all, delete-orphan')
    expenses = db.relationship('Expense', backref='user', lazy=True, cascade='all, delete-orphan')
    goals = db.relationship('Goal', backref='user', lazy=True, cascade='all, delete-orphan')
    decisions = db.relationship('Decision', backref='user', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'firebaseUid': self.firebase_uid,
            'username': self.username,
            'email': self.email,
            'name': self.name,
            'currency': self.currency,
            'monthlyIncome': money_str(self.monthly_income),
            'jobTitle': self.job_title,
            'annualSalary': money_str(self.annual_salary),
            'onboardingCompleted': bool(self.onboarding_completed),
            'financialProfile': self.financial_profile,
            'smartCoins': float(self.smart_coins or 0),
            'dailyStreak': self.daily_streak or 0,
            'lastActiveDate': self.last_active_date,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class Budget(db.Model):
    __tablename__ = 'budgets'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    category = db.Column(db.String(100), nullable=False)  # Food, Entertainment, Shopping...
    monthly_limit = db.Column(MONEY, nullable=False)
    spent = db.Column(MONEY, nullable=False, default=Decimal('0'))
    month = db.Column(db.String(7), nullable=False, index=True)  # YYYY-MM
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'category': self.category,
            'monthlyLimit': money_str(self.monthly_limit),
            'spent': money_str(self.spent),
            'month': self.month,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class Expense(db.Model):
    __tablename__ = 'expenses'
    __table_args__ = (db.UniqueConstraint('user_id', 'client_request_id', name='uq_expense_request'),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    category = db.Column(db.String(100), nullable=False)
    amount = db.Column(MONEY, nullable=False)  # always positive
    description = db.Column(db.Text, nullable=False, default='')
    emotional_tag = db.Column(db.String(50), nullable=True)  # stress, boredom, peer pressure...
    client_request_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'category': self.category,
            'amount': money_str(self.amount),
            'description': self.description or '',
            'emotionalTag': self.emotional_tag,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class Goal(db.Model):
    __tablename__ = 'goals'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    target_amount = db.Column(MONEY, nullable=False)
    current_amount = db.Column(MONEY, nullable=False, default=Decimal('0'))
    target_date = db.Column(db.Date, nullable=True)
    icon = db.Column(db.String(32), nullable=True, default='🎯')
    completed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def refresh_completed(self):
        target = self.target_amount or Decimal('0')
        self.completed = target > 0 and (self.current_amount or Decimal('0')) >= target

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'title': self.title,
            'targetAmount': money_str(self.target_amount),
            'currentAmount': money_str(self.current_amount),
            'targetDate': self.target_date.isoformat() if self.target_date else None,
            'icon': self.icon,
            'completed': bool(self.completed),
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class Decision(db.Model):
    __tablename__ = 'decisions'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    item_name = db.Column(db.String(200), nullable=False)
    amount = db.Column(MONEY, nullable=False)
    category = db.Column(db.String(100), nullable=False)
    desire_level = db.Column(db.Integer, nullable=False)  # 1-10
    urgency = db.Column(db.Integer, nullable=False)  # 1-10
    emotion = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    recommendation = db.Column(db.String(20), nullable=False)  # yes, think_again, no
    reasoning = db.Column(db.Text, nullable=False)
    source = db.Column(db.String(10), nullable=False, default='rules')  # llm or rules
    followed = db.Column(db.Boolean, nullable=True)
    regret_level = db.Column(db.Integer, nullable=True)  # 1-10, filled after purchase
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'itemName': self.item_name,
            'amount': money_str(self.amount),
            'category': self.category,
            'desireLevel': self.desire_level,
            'urgency': self.urgency,
            'emotion': self.emotion,
            'notes': self.notes,
            'recommendation': self.recommendation,
            'reasoning': self.reasoning,
            'source': self.source,
            'followed': self.followed,
            'regretLevel': self.regret_level,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class Streak(db.Model):
    __tablename__ = 'streaks'
    __table_args__ = (db.UniqueConstraint('user_id', 'type', name='uq_streak_type'),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    type = db.Column(db.String(30), nullable=False)  # daily, decision, budget, savings
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    longest_streak = db.Column(db.Integer, nullable=False, default=0)
    last_updated = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'type': self.type,
            'currentStreak': self.current_streak,
            'longestStreak': self.longest_streak,
            'lastUpdated': self.last_updated.isoformat() if self.last_updated else None,
        }


class Achievement(db.Model):
    __tablename__ = 'achievements'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    type = db.Column(db.String(50), nullable=False)  # first_smart_choice, decision_streak_5...
    title = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=False)
    icon = db.Column(db.String(32), nullable=False)
    unlocked_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'type': self.type,
            'title': self.title,
            'description': self.description,
            'icon': self.icon,
            'unlockedAt': self.unlocked_at.isoformat() if self.unlocked_at else None,
        }


class MoodEntry(db.Model):
    __tablename__ = 'mood_entries'
    __table_args__ = (db.UniqueConstraint('user_id', 'date', name='uq_mood_day'),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    mood = db.Column(db.String(50), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    date = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'mood': self.mood,
            'notes': self.notes,
            'date': self.date,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
