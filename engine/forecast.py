import logging
import pandas as pd
from sklearn.linear_model import LinearRegression
import storage

logger = logging.getLogger(__name__)


def _query_user_df(user_id):
    # Build a DataFrame of the user's expenses
    rows = storage.get_expenses_by_user(user_id)
    if not rows:
        return pd.DataFrame(columns=['date', 'amount', 'category'])
    data = [{
        'date': r.created_at,
        'amount': float(r.amount),
        'category': r.category
    } for r in rows]
    df = pd.DataFrame(data)
    df['date'] = pd.to_datetime(df['date'])
    return df


def _monthly_totals(df):
    df = df.copy()
    df['ym'] = df['date'].dt.to_period('M').astype(str)
    return df.groupby('ym')['amount'].sum().reset_index().sort_values('ym')


def predict_next_month_expense(user_id, df=None):
    df = _query_user_df(user_id) if df is None else df
    if df.empty:
        return 0.0
    m = _monthly_totals(df)
    if len(m) < 2:
        # Not enough data to fit
        return float(m['amount'].iloc[-1])
    # Turn months into an integer index
    m['idx'] = range(1, len(m) + 1)
    X = m[['idx']].values
    y = m['amount'].values
    model = LinearRegression().fit(X, y)
    next_idx = m['idx'].max() + 1
    pred = float(model.predict([[next_idx]])[0])
    return round(max(pred, 0.0), 2)


def spending_insights(user, df=None, today=None):
    """Short coaching lines for the analytics screen."""
    df = _query_user_df(user.id) if df is None else df
    month = storage.current_month(today)
    recs = []
    if df.empty:
        recs.append('Log a few expenses to get personalised spending insights.')
        return recs

    income = float(user.monthly_income or 0)
    monthly = _monthly_totals(df)
    if income > 0:
        this_month = float(monthly.loc[monthly['ym'] == month, 'amount'].sum())
        savings_rate = max((income - this_month) / income, 0)
        recs.append(f'Your savings rate this month is {savings_rate * 100:.1f}%. Aim for 20%+ as a baseline.')
    else:
        recs.append('Add your monthly income to compute your savings rate.')

    # Top 3 spend categories
    cat = df.groupby('category')['amount'].sum().sort_values(ascending=False)
    for c, v in cat.head(3).items():
        recs.append(f'High spend in "{c}": {v:.0f}. Consider setting a monthly cap or finding cheaper alternatives.')

    if len(monthly) >= 2:
        last = monthly['amount'].iloc[-1]
        prev_avg = monthly['amount'].iloc[:-1].mean()
        if last > 1.2 * prev_avg:
            recs.append("This month's spending is 20%+ above your previous average. Review discretionary categories.")
    return recs


def spending_analytics(user, today=None):
    month = storage.current_month(today)
    df = _query_user_df(user.id)
    budgets = storage.get_budgets_by_user(user.id, month=month)
    goals = storage.get_goals_by_user(user.id)

    category_spending = {}
    if not df.empty:
        category_spending = {k: round(float(v), 2) for k, v in df.groupby('category')['amount'].sum().items()}
    total_spent = round(float(df['amount'].sum()), 2) if not df.empty else 0.0
    total_budget = round(sum(float(b.monthly_limit) for b in budgets), 2)
    prediction = predict_next_month_expense(user.id, df)
    logger.debug('Forecast for %s: %s', user.id, prediction)

    return {
        'categorySpending': category_spending,
        'totalSpent': total_spent,
        'totalBudget': total_budget,
        'remaining': round(total_budget - total_spent, 2),
        'goals': len(goals),
        'completedGoals': sum(1 for g in goals if g.completed),
        'nextMonthExpensePrediction': prediction,
        'insights': spending_insights(user, df, today),
    }
