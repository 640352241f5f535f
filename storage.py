"""Persistence accessors.

Thin CRUD helpers over the Flask-SQLAlchemy session, one group per entity.
They add and flush but never commit: the route handling the request owns the
transaction, so multi-step writes commit or roll back together.
"""
from datetime import date, datetime
from decimal import Decimal
from werkzeug.exceptions import NotFound
from models import db, utcnow, User, Budget, Expense, Goal, Decision, Streak, Achievement, MoodEntry


def current_month(today: date | None = None) -> str:
    today = today or utcnow().date()
    return today.strftime('%Y-%m')


def _add(row):
    db.session.add(row)
    db.session.flush()
    return row


# ---------------------- Users ----------------------
def get_user(user_id) -> User | None:
    return db.session.get(User, user_id)


def get_user_or_404(user_id) -> User:
    user = get_user(user_id)
    if user is None:
        raise NotFound('User not found')
    return user


def get_user_by_email(email) -> User | None:
    return User.query.filter_by(email=email.lower().strip()).first()


def get_user_by_firebase_uid(uid) -> User | None:
    return User.query.filter_by(firebase_uid=uid).first()


def create_user(**fields) -> User:
    fields['email'] = fields['email'].lower().strip()
    fields.setdefault('username', fields['email'].split('@')[0])
    fields.setdefault('name', fields['username'])
    return _add(User(**fields))


def update_user(user, **fields) -> User:
    for key, value in fields.items():
        setattr(user, key, value)
    db.session.flush()
    return user


# ---------------------- Budgets ----------------------
def get_budgets_by_user(user_id, month=None):
    q = Budget.query.filter_by(user_id=user_id)
    if month:
        q = q.filter_by(month=month)
    return q.order_by(Budget.month.desc(), Budget.category).all()


def get_budget_by_category(user_id, category, month) -> Budget | None:
    return Budget.query.filter_by(user_id=user_id, category=category, month=month).first()


def create_budget(user_id, category, monthly_limit, month, spent=Decimal('0')) -> Budget:
    return _add(Budget(user_id=user_id, category=category, monthly_limit=monthly_limit,
                       spent=spent, month=month))


def update_budget(budget, **fields) -> Budget:
    for key, value in fields.items():
        setattr(budget, key, value)
    db.session.flush()
    return budget


# ---------------------- Expenses ----------------------
def get_expenses_by_user(user_id, since: datetime | None = None):
    q = Expense.query.filter_by(user_id=user_id)
    if since is not None:
        q = q.filter(Expense.created_at >= since)
    return q.order_by(Expense.created_at.desc()).all()


def get_expense_by_request_id(user_id, client_request_id) -> Expense | None:
    return Expense.query.filter_by(user_id=user_id, client_request_id=client_request_id).first()


def create_expense(user_id, amount, category, description='', emotional_tag=None, client_request_id=None) -> Expense:
    return _add(Expense(user_id=user_id, amount=amount, category=category, description=description,
                        emotional_tag=emotional_tag, client_request_id=client_request_id))


# ---------------------- Goals ----------------------
def get_goals_by_user(user_id):
    return Goal.query.filter_by(user_id=user_id).order_by(Goal.created_at).all()


def get_goal(goal_id) -> Goal | None:
    return db.session.get(Goal, goal_id)


def get_goal_or_404(goal_id) -> Goal:
    goal = get_goal(goal_id)
    if goal is None:
        raise NotFound('Goal not found')
    return goal


def create_goal(user_id, title, target_amount, current_amount=Decimal('0'), target_date=None, icon=None) -> Goal:
    goal = Goal(user_id=user_id, title=title, target_amount=target_amount,
                current_amount=current_amount, target_date=target_date, icon=icon or '🎯')
    goal.refresh_completed()
    return _add(goal)


def update_goal(goal, **fields) -> Goal:
    for key, value in fields.items():
        setattr(goal, key, value)
    goal.refresh_completed()
    db.session.flush()
    return goal


def delete_goal(goal):
    db.session.delete(goal)
    db.session.flush()


# ---------------------- Decisions ----------------------
def get_decisions_by_user(user_id):
    """Newest first. Rows sharing a ``created_at`` tick have no defined order."""
    return (Decision.query.filter_by(user_id=user_id)
            .order_by(Decision.created_at.desc(), Decision.id.desc()).all())


def get_decision_or_404(decision_id) -> Decision:
    decision = db.session.get(Decision, decision_id)
    if decision is None:
        raise NotFound('Decision not found')
    return decision


def create_decision(**fields) -> Decision:
    return _add(Decision(**fields))


def update_decision(decision, **fields) -> Decision:
    for key, value in fields.items():
        setattr(decision, key, value)
    db.session.flush()
    return decision


# ---------------------- Streaks ----------------------
def get_streaks_by_user(user_id):
    return Streak.query.filter_by(user_id=user_id).order_by(Streak.type).all()


def get_streak(user_id, streak_type) -> Streak | None:
    return Streak.query.filter_by(user_id=user_id, type=streak_type).first()


def upsert_streak(user_id, streak_type, current) -> Streak:
    streak = get_streak(user_id, streak_type)
    if streak is None:
        streak = _add(Streak(user_id=user_id, type=streak_type, current_streak=0, longest_streak=0))
    streak.current_streak = current
    streak.longest_streak = max(streak.longest_streak or 0, current)
    streak.last_updated = utcnow()
    db.session.flush()
    return streak


# ---------------------- Achievements ----------------------
def get_achievements_by_user(user_id):
    return Achievement.query.filter_by(user_id=user_id).order_by(Achievement.unlocked_at).all()


def has_achievement(user_id, achievement_type) -> bool:
    return Achievement.query.filter_by(user_id=user_id, type=achievement_type).first() is not None


def create_achievement(user_id, achievement_type, title, description, icon) -> Achievement:
    return _add(Achievement(user_id=user_id, type=achievement_type, title=title,
                            description=description, icon=icon))


# ---------------------- Mood ----------------------
def get_mood_for_day(user_id, day: str) -> MoodEntry | None:
    return MoodEntry.query.filter_by(user_id=user_id, date=day).first()


def create_mood_entry(user_id, mood, day: str, notes=None) -> MoodEntry:
    return _add(MoodEntry(user_id=user_id, mood=mood, date=day, notes=notes))
