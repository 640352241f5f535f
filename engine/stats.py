"""Financial IQ and the other summary scores shown on the dashboard."""
import logging
from dataclasses import dataclass, asdict
from datetime import timedelta
from decimal import Decimal
import storage
from models import utcnow

logger = logging.getLogger(__name__)

IQ_BASE = 30
IQ_ONBOARDING = 15
IQ_DECISIONS = 30
IQ_BUDGET = 20
IQ_GOALS_CAP = 10
IQ_ACTIVE_GOAL = 2
IQ_COMPLETED_GOAL = 3
EXPENSE_WINDOW_DAYS = 30


@dataclass
class FinancialStats:
    totalDecisions: int
    smartChoices: int
    moneySaved: float
    currentStreak: int
    financialIQ: int
    decisionAccuracy: int
    budgetAdherence: int
    goalProgress: int

    def to_dict(self):
        return asdict(self)


def _clamp(value, low=0.0, high=100.0):
    return max(low, min(high, value))


def is_good_decision(decision) -> bool:
    followed = bool(decision.followed)
    if decision.recommendation == 'no':
        return not followed
    if decision.recommendation in ('yes', 'think_again'):
        return followed
    return False


def good_decision_streak(decisions) -> int:
    """Consecutive good decisions counted from the newest one."""
    streak = 0
    for d in decisions:
        if not is_good_decision(d):
            break
        streak += 1
    return streak


def money_saved(decisions) -> Decimal:
    return sum((Decimal(d.amount) for d in decisions
                if d.recommendation == 'no' and not d.followed), Decimal('0'))


def budget_adherence(budgets) -> float:
    scores = []
    for b in budgets:
        limit = Decimal(b.monthly_limit or 0)
        if limit <= 0:
            continue
        spent = Decimal(b.spent or 0)
        scores.append(_clamp(float(100 * (limit - spent) / limit)))
    return sum(scores) / len(scores) if scores else 0.0


def goal_progress(goals) -> float:
    if not goals:
        return 0.0
    scores = []
    for g in goals:
        target = Decimal(g.target_amount or 0)
        if target <= 0:
            scores.append(0.0)
            continue
        scores.append(_clamp(float(100 * Decimal(g.current_amount or 0) / target)))
    return sum(scores) / len(scores)


def goal_points(goals) -> int:
    completed = sum(1 for g in goals if g.completed)
    active = len(goals) - completed
    return min(IQ_GOALS_CAP, IQ_ACTIVE_GOAL * active + IQ_COMPLETED_GOAL * completed)


def tracking_points(recent_expense_count) -> int:
    if recent_expense_count >= 10:
        return 10
    if recent_expense_count >= 5:
        return 5
    return 0


def savings_points(monthly_income, month_spent) -> int:
    income = Decimal(monthly_income or 0)
    if income <= 0:
        return 0
    rate = (income - Decimal(month_spent)) / income
    if rate > Decimal('0.2'):
        return 5
    if rate > Decimal('0.1'):
        return 3
    return 0


def financial_iq(onboarded, smart_fraction, adherence, goals_pts, tracking_pts, savings_pts) -> int:
    score = IQ_BASE
    if onboarded:
        score += IQ_ONBOARDING
    score += IQ_DECISIONS * smart_fraction
    score += IQ_BUDGET * adherence / 100
    score += goals_pts + tracking_pts + savings_pts
    return int(_clamp(round(score), 0, 100))


def compute_financial_stats(user, now=None) -> FinancialStats:
    now = now or utcnow()
    month = storage.current_month(now.date())

    decisions = storage.get_decisions_by_user(user.id)
    budgets = storage.get_budgets_by_user(user.id, month=month)
    goals = storage.get_goals_by_user(user.id)
    window_start = now - timedelta(days=EXPENSE_WINDOW_DAYS)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    expenses = storage.get_expenses_by_user(user.id, since=min(window_start, month_start))

    total = len(decisions)
    smart = sum(1 for d in decisions if is_good_decision(d))
    smart_fraction = smart / total if total else 0.0
    adherence = budget_adherence(budgets)
    progress = goal_progress(goals)

    recent = sum(1 for e in expenses if e.created_at >= window_start)
    month_spent = sum((Decimal(e.amount) for e in expenses
                       if e.created_at.strftime('%Y-%m') == month), Decimal('0'))

    iq = financial_iq(bool(user.onboarding_completed), smart_fraction, adherence,
                      goal_points(goals), tracking_points(recent),
                      savings_points(user.monthly_income, month_spent))
    logger.debug('Financial IQ for %s: %s (%s/%s smart decisions)', user.id, iq, smart, total)

    return FinancialStats(
        totalDecisions=total,
        smartChoices=smart,
        moneySaved=float(money_saved(decisions)),
        currentStreak=good_decision_streak(decisions),
        financialIQ=iq,
        decisionAccuracy=round(100 * smart / total) if total else 0,
        budgetAdherence=round(adherence),
        goalProgress=round(progress),
    )
