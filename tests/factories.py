from datetime import datetime
from decimal import Decimal
import storage
from models import db, utcnow, Budget, Decision, Expense


def add_budget(user_id, category, limit, spent='0', month=None):
    b = Budget(user_id=user_id, category=category, monthly_limit=Decimal(limit), spent=Decimal(spent),
               month=month or storage.current_month())
    db.session.add(b)
    db.session.commit()
    return b


def add_goal(user_id, title, target, current='0'):
    g = storage.create_goal(user_id, title, Decimal(target), current_amount=Decimal(current))
    db.session.commit()
    return g


def add_decision(user_id, recommendation, followed, amount='10', created_at=None, **extra):
    d = Decision(user_id=user_id, item_name=extra.pop('item_name', 'Thing'), amount=Decimal(amount),
                 category='Shopping', desire_level=5, urgency=5, recommendation=recommendation,
                 reasoning='because', followed=followed, created_at=created_at or datetime(2026, 1, 1), **extra)
    db.session.add(d)
    db.session.commit()
    return d


def add_expense(user_id, amount, category='food', created_at=None):
    e = Expense(user_id=user_id, amount=Decimal(amount), category=category, description='x',
                created_at=created_at or utcnow())
    db.session.add(e)
    db.session.commit()
    return e
