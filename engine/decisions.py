"""Purchase decision coach.

A candidate purchase is scored against the remaining budget for its category.
The language model is asked first; when it is unavailable or answers badly
the deterministic rule table decides instead. Callers can tell the two apart
by the result type.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
import storage
from engine.budget import remaining_budget
from engine.errors import LLMError, ValidationError
from engine.money import parse_amount, parse_level, require_text
from engine.stats import good_decision_streak, is_good_decision

logger = logging.getLogger(__name__)

RECOMMENDATIONS = ('yes', 'think_again', 'no')

RULE_REASONING = {
    'over_budget': (
        "This would take you over what's left in your budget for this category. "
        "Let's skip it for now and revisit next month."
    ),
    'large_share_low_motivation': (
        "This would use a big chunk of your remaining budget and you don't seem that keen on it. "
        "Sleep on it for a day or two before deciding."
    ),
    'strong_and_affordable': (
        "You really want this, it's fairly urgent, and it barely dents your budget. Go for it!"
    ),
    'wanted_but_reconsider': (
        "You clearly want this, but it's worth a second look. Could you find it cheaper or wait for a sale?"
    ),
    'impulse': (
        "This looks like an impulse buy. Skipping it keeps your savings growing."
    ),
}


@dataclass(frozen=True)
class LLMRecommendation:
    recommendation: str
    reasoning: str
    source = 'llm'


@dataclass(frozen=True)
class RuleBasedRecommendation:
    recommendation: str
    reasoning: str
    reason: str
    source = 'rules'


def rule_based_recommendation(amount, remaining, desire_level, urgency) -> RuleBasedRecommendation:
    amount = Decimal(amount)
    remaining = Decimal(remaining)
    cost_ratio = amount / remaining if remaining > 0 else Decimal(1)
    total_score = desire_level + urgency

    if cost_ratio > 1:
        recommendation, reason = 'no', 'over_budget'
    elif cost_ratio > Decimal('0.7') and total_score < 12:
        recommendation, reason = 'think_again', 'large_share_low_motivation'
    elif total_score >= 16 and cost_ratio <= Decimal('0.3'):
        recommendation, reason = 'yes', 'strong_and_affordable'
    elif total_score >= 14:
        recommendation, reason = 'think_again', 'wanted_but_reconsider'
    else:
        recommendation, reason = 'no', 'impulse'
    return RuleBasedRecommendation(recommendation, RULE_REASONING[reason], reason)


def build_prompt(item_name, amount, category, desire_level, urgency, remaining, currency='GBP'):
    symbol = {'GBP': '£', 'USD': '$', 'EUR': '€', 'INR': '₹'}.get(currency, '')
    return f"""You are Smartie, a friendly AI financial assistant. Analyze this purchase decision and provide advice.

Purchase Details:
- Item: {item_name}
- Cost: {symbol}{amount}
- Category: {category}
- Desire Level: {desire_level}/10
- Urgency: {urgency}/10
- Remaining Budget: {symbol}{remaining}

Provide a recommendation (yes/think_again/no) and friendly reasoning in JSON format:
{{
  "recommendation": "yes|think_again|no",
  "reasoning": "Your friendly advice here"
}}"""


def _ask_llm(llm, prompt) -> LLMRecommendation:
    data = llm.complete_json(prompt)
    recommendation = str(data.get('recommendation', '')).strip().lower()
    reasoning = str(data.get('reasoning', '')).strip()
    if recommendation not in RECOMMENDATIONS:
        raise LLMError(f'Unknown recommendation {recommendation!r}')
    if not reasoning:
        raise LLMError('Empty reasoning')
    return LLMRecommendation(recommendation, reasoning)


def evaluate_decision(user, item_name, amount, category, desire_level, urgency, llm=None, today=None):
    """Return an ``LLMRecommendation`` or a ``RuleBasedRecommendation``."""
    require_text(item_name, 'itemName')
    amount = parse_amount(amount)
    category = require_text(category, 'category')
    desire_level = parse_level(desire_level, 'desireLevel')
    urgency = parse_level(urgency, 'urgency')

    remaining = remaining_budget(user.id, category, today)

    if llm is not None:
        prompt = build_prompt(item_name, amount, category, desire_level, urgency, remaining, user.currency)
        try:
            return _ask_llm(llm, prompt)
        except LLMError as e:
            logger.warning('Decision LLM failed for user %s, using rule table: %s', user.id, e)
    return rule_based_recommendation(amount, remaining, desire_level, urgency)


def create_decision(user, payload, llm=None, today=None):
    """Evaluate the purchase in ``payload`` and persist it as a Decision row."""
    if not isinstance(payload, dict):
        raise ValidationError('Invalid decision data')
    result = evaluate_decision(user, payload.get('itemName'), payload.get('amount'),
                               payload.get('category'), payload.get('desireLevel'),
                               payload.get('urgency'), llm=llm, today=today)
    return storage.create_decision(
        user_id=user.id,
        item_name=payload['itemName'].strip(),
        amount=parse_amount(payload['amount']),
        category=payload['category'].strip(),
        desire_level=parse_level(payload['desireLevel'], 'desireLevel'),
        urgency=parse_level(payload['urgency'], 'urgency'),
        emotion=payload.get('emotion'),
        notes=payload.get('notes'),
        recommendation=result.recommendation,
        reasoning=result.reasoning,
        source=result.source,
    ), result


ACHIEVEMENTS = {
    'first_smart_choice': ('First Smart Choice', 'Followed through on your first smart purchase decision.', '🧠'),
    'decision_streak_5': ('Decision Streak', 'Five smart decisions in a row.', '🔥'),
}


def _unlock(user_id, achievement_type):
    if storage.has_achievement(user_id, achievement_type):
        return None
    title, description, icon = ACHIEVEMENTS[achievement_type]
    return storage.create_achievement(user_id, achievement_type, title, description, icon)


def record_decision_outcome(decision, followed, regret_level=None):
    """Store whether the user followed the recommendation.

    Refreshes the ``decision`` streak row and returns any newly unlocked
    achievements.
    """
    if not isinstance(followed, bool):
        raise ValidationError('followed must be true or false')
    fields = {'followed': followed}
    if regret_level is not None:
        fields['regret_level'] = parse_level(regret_level, 'regretLevel')
    storage.update_decision(decision, **fields)

    decisions = storage.get_decisions_by_user(decision.user_id)
    streak = good_decision_streak(decisions)
    storage.upsert_streak(decision.user_id, 'decision', streak)

    unlocked = []
    if is_good_decision(decision):
        unlocked.append(_unlock(decision.user_id, 'first_smart_choice'))
    if streak >= 5:
        unlocked.append(_unlock(decision.user_id, 'decision_streak_5'))
    return [a for a in unlocked if a is not None]
