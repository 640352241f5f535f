import os
import logging
from datetime import date, timedelta
from flask import Flask, Blueprint, request, jsonify, current_app
from werkzeug.exceptions import HTTPException, BadRequest, Conflict, InternalServerError
from sqlalchemy.exc import SQLAlchemyError
import config
import storage
from models import db, utcnow
from engine.budget import record_expense
from engine.chat import chat, add_money_to_goal, reset_goals
from engine.decisions import create_decision, record_decision_outcome
from engine.errors import InsufficientCoins, ValidationError
from engine.forecast import spending_analytics
from engine.llm import SmartieLLM
from engine.money import parse_amount, require_text
from engine.stats import compute_financial_stats

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')


def create_app(overrides=None, llm=None):
    app = Flask(__name__)
    app.config.update(config.flask_config())
    app.config.update(overrides or {})
    logging.basicConfig(level=app.config.get('LOG_LEVEL', 'INFO'),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    db.init_app(app)
    if llm is None:
        llm = SmartieLLM(api_key=app.config.get('OPENAI_API_KEY'), model=app.config['OPENAI_MODEL'],
                         timeout=app.config.get('OPENAI_TIMEOUT', 20.0))
    app.extensions['smartie_llm'] = llm
    app.register_blueprint(api)
    _register_error_handlers(app)
    with app.app_context():
        db.create_all()
    return app


def _llm():
    return current_app.extensions.get('smartie_llm')


# ---------------------- Error Handling ----------------------
def _register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def handle_validation(e):
        db.session.rollback()
        return jsonify({'error': str(e)}), 400

    @app.errorhandler(InsufficientCoins)
    def handle_insufficient_coins(e):
        db.session.rollback()
        return jsonify({'error': 'Insufficient SmartCoins', 'coinsNeeded': float(e.coins_needed),
                        'message': str(e)}), 402

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e):
        db.session.rollback()
        logger.exception('Database error')
        return jsonify({'error': 'Database error'}), 500

    @app.errorhandler(HTTPException)
    def handle_http(e):
        db.session.rollback()
        return jsonify({'error': e.description}), e.code


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Commit failed')
        raise InternalServerError('Could not save changes')


def _body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('Expected a JSON object')
    return data


def _user_from_body(data):
    return storage.get_user_or_404(require_text(data.get('userId'), 'userId'))


def _optional_amount(data, key, field, allow_zero=False):
    if data.get(key) in (None, ''):
        return None
    return parse_amount(data[key], field, allow_zero=allow_zero)


# ---------------------- Routes: Users ----------------------
@api.route('/auth/firebase-user', methods=['POST'])
def sync_firebase_user():
    data = _body()
    uid = require_text(data.get('firebaseUid'), 'firebaseUid')
    email = require_text(data.get('email'), 'email')
    name = (data.get('name') or data.get('displayName') or '').strip()

    user = storage.get_user_by_firebase_uid(uid) or storage.get_user_by_email(email)
    if user is None:
        user = storage.create_user(firebase_uid=uid, email=email, name=name or email.split('@')[0],
                                   smart_coins=current_app.config['STARTING_COINS'])
        logger.info('Created user %s for %s', user.id, user.email)
    else:
        fields = {'firebase_uid': uid}
        if name and not user.name:
            fields['name'] = name
        storage.update_user(user, **fields)
    _commit()
    return jsonify(user.to_dict())


@api.route('/user/<identifier>')
def get_user(identifier):
    user = storage.get_user(identifier)
    if user is None and '@' in identifier:
        user = storage.get_user_by_email(identifier)
    if user is None:
        return jsonify({'error': 'User not found'}), 404
    return jsonify(user.to_dict())


def _profile_fields(data):
    fields = {}
    for key, column in (('name', 'name'), ('currency', 'currency'), ('jobTitle', 'job_title')):
        if key in data:
            fields[column] = require_text(data[key], key)
    if 'monthlyIncome' in data:
        fields['monthly_income'] = _optional_amount(data, 'monthlyIncome', 'monthlyIncome')
    if 'annualSalary' in data:
        fields['annual_salary'] = _optional_amount(data, 'annualSalary', 'annualSalary')
    return fields


@api.route('/user/<user_id>', methods=['PATCH'])
def update_user(user_id):
    user = storage.get_user_or_404(user_id)
    storage.update_user(user, **_profile_fields(_body()))
    _commit()
    return jsonify(user.to_dict())


@api.route('/user/<user_id>/financial-info', methods=['PATCH'])
def update_financial_info(user_id):
    user = storage.get_user_or_404(user_id)
    data = _body()
    fields = _profile_fields(data)
    if isinstance(data.get('financialProfile'), dict):
        fields['financial_profile'] = {**(user.financial_profile or {}), **data['financialProfile']}
    storage.update_user(user, **fields)
    _commit()
    return jsonify(user.to_dict())


@api.route('/user/<user_id>/complete-onboarding', methods=['POST'])
def complete_onboarding(user_id):
    user = storage.get_user_or_404(user_id)
    data = _body()
    fields = {'onboarding_completed': True}
    if isinstance(data.get('financialProfile'), dict):
        fields['financial_profile'] = data['financialProfile']
    if data.get('name'):
        fields['name'] = require_text(data['name'], 'name')
    if data.get('monthlyIncome') not in (None, ''):
        fields['monthly_income'] = parse_amount(data['monthlyIncome'], 'monthlyIncome')
    storage.update_user(user, **fields)
    _commit()
    return jsonify(user.to_dict())


@api.route('/user/<user_id>/daily-reward', methods=['POST'])
def claim_daily_reward(user_id):
    user = storage.get_user_or_404(user_id)
    today = utcnow().date()
    if user.last_active_date == today.isoformat():
        raise Conflict('Daily reward already claimed')
    yesterday = (today - timedelta(days=1)).isoformat()
    streak = (user.daily_streak or 0) + 1 if user.last_active_date == yesterday else 1
    coins = config.DAILY_REWARD_COINS
    if streak >= config.DAILY_REWARD_STREAK_THRESHOLD:
        coins += config.DAILY_REWARD_STREAK_BONUS
    storage.update_user(user, daily_streak=streak, last_active_date=today.isoformat(),
                        smart_coins=(user.smart_coins or 0) + coins)
    storage.upsert_streak(user.id, 'daily', streak)
    _commit()
    return jsonify({'coinsEarned': coins, 'totalCoins': float(user.smart_coins), 'streak': streak})


@api.route('/user/<user_id>/share-reward', methods=['POST'])
def claim_share_reward(user_id):
    user = storage.get_user_or_404(user_id)
    storage.update_user(user, smart_coins=(user.smart_coins or 0) + config.SHARE_REWARD_COINS)
    _commit()
    return jsonify({'coinsEarned': config.SHARE_REWARD_COINS, 'totalCoins': float(user.smart_coins)})


@api.route('/user/<user_id>/financial-stats')
def financial_stats(user_id):
    user = storage.get_user_or_404(user_id)
    return jsonify(compute_financial_stats(user).to_dict())


@api.route('/analytics/<user_id>')
def analytics(user_id):
    user = storage.get_user_or_404(user_id)
    return jsonify(spending_analytics(user))


# ---------------------- Routes: Budgets ----------------------
@api.route('/budgets/<user_id>')
def list_budgets(user_id):
    storage.get_user_or_404(user_id)
    month = request.args.get('month')
    return jsonify([b.to_dict() for b in storage.get_budgets_by_user(user_id, month=month)])


@api.route('/budgets', methods=['POST'])
def create_budget():
    data = _body()
    user = _user_from_body(data)
    category = require_text(data.get('category'), 'category')
    month = (data.get('month') or storage.current_month()).strip()
    if len(month) != 7 or month[4] != '-':
        raise ValidationError('month must be YYYY-MM')
    if storage.get_budget_by_category(user.id, category, month):
        raise Conflict(f'A {category} budget already exists for {month}')
    budget = storage.create_budget(user.id, category, parse_amount(data.get('monthlyLimit'), 'monthlyLimit'), month)
    _commit()
    return jsonify(budget.to_dict())


# ---------------------- Routes: Expenses ----------------------
@api.route('/expenses/<user_id>')
def list_expenses(user_id):
    storage.get_user_or_404(user_id)
    return jsonify([e.to_dict() for e in storage.get_expenses_by_user(user_id)])


@api.route('/expenses', methods=['POST'])
def add_expense():
    data = _body()
    user = _user_from_body(data)
    expense, _ = record_expense(user, data.get('amount'), data.get('category'),
                                data.get('description', ''), emotional_tag=data.get('emotionalTag'),
                                client_request_id=data.get('clientRequestId'))
    _commit()
    return jsonify(expense.to_dict())


# ---------------------- Routes: Goals ----------------------
@api.route('/goals/<user_id>')
def list_goals(user_id):
    storage.get_user_or_404(user_id)
    return jsonify([g.to_dict() for g in storage.get_goals_by_user(user_id)])


def _parse_date(value, field):
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f'{field} must be YYYY-MM-DD')


@api.route('/goals', methods=['POST'])
def create_goal():
    data = _body()
    user = _user_from_body(data)
    goal = storage.create_goal(
        user.id,
        require_text(data.get('title'), 'title'),
        parse_amount(data.get('targetAmount'), 'targetAmount'),
        current_amount=_optional_amount(data, 'currentAmount', 'currentAmount', allow_zero=True) or 0,
        target_date=_parse_date(data.get('targetDate'), 'targetDate'),
        icon=data.get('icon'),
    )
    _commit()
    return jsonify(goal.to_dict())


@api.route('/goals/<goal_id>', methods=['PATCH'])
def update_goal(goal_id):
    goal = storage.get_goal_or_404(goal_id)
    data = _body()
    fields = {}
    if 'title' in data:
        fields['title'] = require_text(data['title'], 'title')
    if 'targetAmount' in data:
        fields['target_amount'] = parse_amount(data['targetAmount'], 'targetAmount')
    if 'currentAmount' in data:
        fields['current_amount'] = parse_amount(data['currentAmount'], 'currentAmount', allow_zero=True)
    if 'targetDate' in data:
        fields['target_date'] = _parse_date(data['targetDate'], 'targetDate')
    if 'icon' in data:
        fields['icon'] = data['icon']
    storage.update_goal(goal, **fields)
    _commit()
    return jsonify(goal.to_dict())


@api.route('/goals/<goal_id>/add-money', methods=['POST'])
def add_money(goal_id):
    goal = storage.get_goal_or_404(goal_id)
    add_money_to_goal(goal, _body().get('amount'))
    _commit()
    return jsonify(goal.to_dict())


@api.route('/goals/reset/<user_id>', methods=['POST'])
def reset_user_goals(user_id):
    storage.get_user_or_404(user_id)
    goals = reset_goals(user_id)
    _commit()
    return jsonify({'success': True, 'goalsReset': len(goals), 'goals': [g.to_dict() for g in goals]})


@api.route('/goals/<goal_id>', methods=['DELETE'])
def delete_goal(goal_id):
    goal = storage.get_goal_or_404(goal_id)
    storage.delete_goal(goal)
    _commit()
    return jsonify({'success': True, 'message': 'Goal deleted.'})


# ---------------------- Routes: Decisions ----------------------
@api.route('/decisions', methods=['POST'])
def add_decision():
    data = _body()
    user = _user_from_body(data)
    decision, _ = create_decision(user, data, llm=_llm())
    _commit()
    return jsonify(decision.to_dict())


@api.route('/decisions/<user_id>')
def list_decisions(user_id):
    storage.get_user_or_404(user_id)
    return jsonify([d.to_dict() for d in storage.get_decisions_by_user(user_id)])


@api.route('/decisions/<decision_id>/outcome', methods=['POST'])
def decision_outcome(decision_id):
    decision = storage.get_decision_or_404(decision_id)
    data = _body()
    unlocked = record_decision_outcome(decision, data.get('followed'), data.get('regretLevel'))
    _commit()
    return jsonify({'decision': decision.to_dict(), 'achievementsUnlocked': [a.to_dict() for a in unlocked]})


# ---------------------- Routes: Streaks, Achievements, Mood ----------------------
@api.route('/streaks/<user_id>')
def list_streaks(user_id):
    storage.get_user_or_404(user_id)
    return jsonify([s.to_dict() for s in storage.get_streaks_by_user(user_id)])


@api.route('/achievements/<user_id>')
def list_achievements(user_id):
    storage.get_user_or_404(user_id)
    return jsonify([a.to_dict() for a in storage.get_achievements_by_user(user_id)])


@api.route('/mood', methods=['POST'])
def log_mood():
    data = _body()
    user = _user_from_body(data)
    today = utcnow().date().isoformat()
    if storage.get_mood_for_day(user.id, today):
        raise Conflict('Mood already logged today')
    entry = storage.create_mood_entry(user.id, require_text(data.get('mood'), 'mood'), today,
                                      notes=data.get('notes'))
    _commit()
    return jsonify(entry.to_dict())


@api.route('/mood/today/<user_id>')
def mood_today(user_id):
    storage.get_user_or_404(user_id)
    entry = storage.get_mood_for_day(user_id, utcnow().date().isoformat())
    if entry is None:
        return jsonify({'error': 'No mood logged today'}), 404
    return jsonify(entry.to_dict())


# ---------------------- Routes: Smartie ----------------------
@api.route('/smartie/chat', methods=['POST'])
def smartie_chat():
    data = _body()
    user = _user_from_body(data)
    reply = chat(user, data.get('message'), llm=_llm(), coin_cost=current_app.config['CHAT_COIN_COST'])
    _commit()
    return jsonify(reply.to_dict())


# ---------------------- Run App ----------------------
if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), debug=True)
