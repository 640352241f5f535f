from decimal import Decimal
from factories import add_goal
from models import db, Goal
import storage


def test_reset_only_touches_own_goals(client, app, user_id):
    with app.app_context():
        other = storage.create_user(email='sam@example.com', name='Sam')
        db.session.commit()
        other_id = other.id
        add_goal(user_id, 'Laptop', '800', current='300')
        add_goal(user_id, 'Holiday', '1500', current='1500')
        add_goal(other_id, 'Bike', '400', current='120')

    res = client.post(f'/api/goals/reset/{user_id}')
    assert res.status_code == 200
    assert res.get_json()['goalsReset'] == 2

    with app.app_context():
        mine = {g.title: g for g in storage.get_goals_by_user(user_id)}
        assert mine['Laptop'].current_amount == Decimal('0')
        assert mine['Holiday'].current_amount == Decimal('0')
        assert mine['Laptop'].target_amount == Decimal('800.00')
        assert mine['Holiday'].target_amount == Decimal('1500.00')
        assert not mine['Holiday'].completed
        theirs = storage.get_goals_by_user(other_id)[0]
        assert theirs.current_amount == Decimal('120.00')


def test_create_and_add_money(client, user_id):
    res = client.post('/api/goals', json={'userId': user_id, 'title': 'Emergency Fund', 'targetAmount': 500,
                                          'targetDate': '2027-01-31'})
    assert res.status_code == 200
    goal = res.get_json()
    assert goal['currentAmount'] == '0.00'
    assert goal['targetDate'] == '2027-01-31'
    assert goal['completed'] is False

    res = client.post(f"/api/goals/{goal['id']}/add-money", json={'amount': '125.25'})
    assert res.get_json()['currentAmount'] == '125.25'

    res = client.post(f"/api/goals/{goal['id']}/add-money", json={'amount': 374.75})
    body = res.get_json()
    assert body['currentAmount'] == '500.00'
    assert body['completed'] is True


def test_add_money_validation_and_not_found(client, user_id):
    goal = client.post('/api/goals', json={'userId': user_id, 'title': 'Car', 'targetAmount': 5000}).get_json()
    assert client.post(f"/api/goals/{goal['id']}/add-money", json={'amount': 0}).status_code == 400
    assert client.post('/api/goals/nope/add-money', json={'amount': 10}).status_code == 404


def test_update_and_delete_goal(client, user_id, app):
    goal = client.post('/api/goals', json={'userId': user_id, 'title': 'Car', 'targetAmount': 5000}).get_json()
    res = client.patch(f"/api/goals/{goal['id']}", json={'title': 'New car', 'currentAmount': 0})
    assert res.get_json()['title'] == 'New car'

    res = client.delete(f"/api/goals/{goal['id']}")
    assert res.status_code == 200
    with app.app_context():
        assert Goal.query.count() == 0
    assert client.delete(f"/api/goals/{goal['id']}").status_code == 404


def test_reset_unknown_user(client):
    assert client.post('/api/goals/reset/ghost').status_code == 404


def test_create_goal_with_zero_current_amount(client, user_id):
    res = client.post('/api/goals', json={'userId': user_id, 'title': 'Car', 'targetAmount': '500',
                                          'currentAmount': '0'})
    assert res.status_code == 200
    assert res.get_json()['currentAmount'] == '0.00'

    res = client.post('/api/goals', json={'userId': user_id, 'title': 'Bad', 'targetAmount': '500',
                                          'currentAmount': '-5'})
    assert res.status_code == 400
