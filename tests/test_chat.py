from decimal import Decimal
import pytest
from conftest import FakeLLM
from engine.chat import canned_reply, categorize, chat, match_action, DEFAULT_REPLY
from engine.errors import InsufficientCoins
from factories import add_budget, add_goal
from models import db, Expense, Goal
import storage


@pytest.mark.parametrize('message, action', [
    ('Log £20 for food', ('add_expense', {'amount': '20', 'category': 'food', 'description': 'food'})),
    ('I spent 12.50 on a taxi home', ('add_expense', {'amount': '12.50', 'category': 'transport',
                                                      'description': 'a taxi home'})),
    ('Create a goal for a laptop £800', ('create_goal', {'title': 'Laptop', 'targetAmount': '800'})),
    ('Add £50 to my vacation fund', ('add_money_to_goal', {'goalTitle': 'vacation', 'amount': '50'})),
    ('Please reset my savings tree', ('reset_savings_tree', {})),
    ('Show me my spending', ('get_financial_summary', {})),
    ('How do I become a millionaire?', None),
])
def test_match_action(message, action):
    assert match_action(message) == action


def test_categorize():
    assert categorize('Lunch at Pret') == 'food'
    assert categorize('Netflix') == 'entertainment'
    assert categorize('mystery box') == 'other'


def test_canned_essays():
    assert 'millionaire' in canned_reply('how to be a millionaire').lower()
    assert 'Investing' in canned_reply('should I invest in shares?')
    assert '50/30/20' in canned_reply('help me make a budget')
    assert canned_reply('hello there') == DEFAULT_REPLY
    # word boundaries: "enrich" is not "rich"
    assert canned_reply('enrich my day') == DEFAULT_REPLY


def test_chat_charges_half_a_coin(user):
    reply = chat(user, 'hello', llm=FakeLLM(fail=True))
    db.session.commit()
    assert reply.source == 'fallback'
    assert reply.coins_used == Decimal('0.5')
    assert reply.remaining_coins == Decimal('24.50')
    assert user.smart_coins == Decimal('24.50')
    assert reply.to_dict()['remainingCoins'] == 24.5


def test_chat_rejects_when_coins_too_low(user):
    user.smart_coins = Decimal('0.40')
    db.session.commit()
    with pytest.raises(InsufficientCoins) as exc:
        chat(user, 'hello', llm=FakeLLM(fail=True))
    assert exc.value.coins_needed == Decimal('0.10')
    db.session.rollback()
    assert user.smart_coins == Decimal('0.40')


def test_fallback_logs_expense_and_syncs_budget(user):
    food = add_budget(user.id, 'food', '100', spent='10')
    reply = chat(user, 'log £20 for food', llm=FakeLLM(fail=True))
    db.session.commit()
    assert reply.action_performed['type'] == 'add_expense'
    assert food.spent == Decimal('30.00')
    assert '£' not in reply.action_performed['data']['amount']
    assert Expense.query.count() == 1


def test_fallback_adds_money_to_goal_by_title(user):
    goal = add_goal(user.id, 'Vacation', '1000', current='100')
    reply = chat(user, 'add £50 to my vacation fund', llm=None)
    db.session.commit()
    assert reply.action_performed['type'] == 'add_money_to_goal'
    assert goal.current_amount == Decimal('150.00')


def test_fallback_unknown_goal_is_soft(user):
    reply = chat(user, 'add £50 to my pony fund', llm=None)
    assert reply.action_performed is None
    assert "couldn't find" in reply.message


def test_fallback_creates_goal(user):
    reply = chat(user, 'create a goal for a new bike £400', llm=None)
    db.session.commit()
    assert reply.action_performed['type'] == 'create_goal'
    goal = Goal.query.one()
    assert goal.title == 'New Bike'
    assert goal.target_amount == Decimal('400.00')


def test_llm_tool_call_is_executed(user):
    goal = add_goal(user.id, 'Laptop', '900', current='0')
    llm = FakeLLM(chat_text='On it!', tool_calls=[('add_money_to_goal', {'goalId': goal.id, 'amount': 45})])
    reply = chat(user, 'put 45 towards my laptop', llm=llm)
    db.session.commit()
    assert reply.source == 'llm'
    assert reply.message.startswith('On it!')
    assert reply.action_performed['data']['currentAmount'] == '45.00'
    assert 'USER\'S CURRENT FINANCIAL DATA' in llm.prompts[0]
    assert goal.id in llm.prompts[0]


def test_llm_text_reply(user):
    reply = chat(user, 'hi', llm=FakeLLM(chat_text='Hello from Smartie'))
    assert reply.message == 'Hello from Smartie'
    assert reply.action_performed is None


def test_chat_route(client, user_id):
    res = client.post('/api/smartie/chat', json={'userId': user_id, 'message': 'Show me my spending'})
    assert res.status_code == 200
    body = res.get_json()
    assert body['coinsUsed'] == 0.5
    assert body['remainingCoins'] == 24.5
    assert body['actionPerformed']['type'] == 'get_financial_summary'
    assert 'timestamp' in body


def test_chat_route_insufficient_coins(client, user_id, app):
    with app.app_context():
        storage.update_user(storage.get_user(user_id), smart_coins=Decimal('0.25'))
        db.session.commit()

    res = client.post('/api/smartie/chat', json={'userId': user_id, 'message': 'hello'})
    assert res.status_code == 402
    body = res.get_json()
    assert body['error'] == 'Insufficient SmartCoins'
    assert body['coinsNeeded'] == 0.25

    with app.app_context():
        assert storage.get_user(user_id).smart_coins == Decimal('0.25')


def test_chat_route_requires_message(client, user_id):
    res = client.post('/api/smartie/chat', json={'userId': user_id, 'message': '   '})
    assert res.status_code == 400


def test_llm_tool_args_with_numbers_are_coerced(user):
    llm = FakeLLM(tool_calls=[('add_expense', {'amount': 5, 'description': 12, 'category': 'food'})])
    reply = chat(user, 'log it', llm=llm)
    db.session.commit()
    assert reply.action_performed['data']['description'] == '12'
    assert reply.action_performed['data']['amount'] == '5.00'


def test_llm_goal_title_and_date_as_numbers_are_soft(user):
    add_goal(user.id, 'Fund 2027', '500', current='0')
    llm = FakeLLM(tool_calls=[('add_money_to_goal', {'goalTitle': 2027, 'amount': 10}),
                              ('create_goal', {'title': 'Car', 'targetAmount': 900, 'targetDate': 2027})])
    reply = chat(user, 'do things', llm=llm)
    assert reply.source == 'llm'
    assert 'Fund 2027' in reply.message
    assert 'targetDate must be YYYY-MM-DD' in reply.message


def test_llm_tool_args_that_are_not_an_object_are_soft(user):
    reply = chat(user, 'make a goal', llm=FakeLLM(tool_calls=[('create_goal', ['x'])]))
    assert reply.action_performed is None
    assert "couldn't understand" in reply.message
    assert Goal.query.count() == 0
    assert user.smart_coins == Decimal('24.50')
