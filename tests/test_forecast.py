from datetime import date, datetime
from engine.forecast import predict_next_month_expense, spending_analytics, spending_insights
from factories import add_budget, add_expense, add_goal


def test_prediction_without_data(user):
    assert predict_next_month_expense(user.id) == 0.0


def test_prediction_with_single_month_repeats_it(user):
    add_expense(user.id, '40', created_at=datetime(2026, 3, 2))
    add_expense(user.id, '60', created_at=datetime(2026, 3, 20))
    assert predict_next_month_expense(user.id) == 100.0


def test_prediction_follows_linear_trend(user):
    for month, amount in ((1, '100'), (2, '200'), (3, '300')):
        add_expense(user.id, amount, created_at=datetime(2026, month, 5))
    assert predict_next_month_expense(user.id) == 400.0


def test_insights_flag_top_categories(user):
    add_expense(user.id, '300', category='shopping')
    add_expense(user.id, '20', category='food')
    recs = spending_insights(user)
    assert any('shopping' in r for r in recs)
    assert recs[0].startswith('Your savings rate this month')


def test_analytics_route(client, user_id, app):
    with app.app_context():
        add_budget(user_id, 'food', '200', spent='0')
        add_goal(user_id, 'Trip', '100', current='100')
        add_expense(user_id, '25', category='food')

    body = client.get(f'/api/analytics/{user_id}').get_json()
    assert body['categorySpending'] == {'food': 25.0}
    assert body['totalSpent'] == 25.0
    assert body['totalBudget'] == 200.0
    assert body['remaining'] == 175.0
    assert body['goals'] == 1
    assert body['completedGoals'] == 1
    assert body['nextMonthExpensePrediction'] == 25.0


def test_spending_analytics_empty(user):
    result = spending_analytics(user)
    assert result['totalSpent'] == 0.0
    assert result['categorySpending'] == {}


def test_savings_rate_uses_the_current_month(user):
    add_expense(user.id, '300', created_at=datetime(2026, 2, 5))
    recs = spending_insights(user, today=date(2026, 3, 10))
    assert recs[0] == 'Your savings rate this month is 100.0%. Aim for 20%+ as a baseline.'
    recs = spending_insights(user, today=date(2026, 2, 20))
    assert recs[0] == 'Your savings rate this month is 90.0%. Aim for 20%+ as a baseline.'
