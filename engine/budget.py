import logging
import storage
from engine.money import parse_amount, quantize, require_text

logger = logging.getLogger(__name__)


def record_expense(user, amount, category, description='', emotional_tag=None,
                   client_request_id=None, today=None):
    """Insert an expense and charge it to this month's budget for its category.

    Returns ``(expense, budget)``; ``budget`` is None when the category has no
    budget this month. Only flushes, the caller commits both writes together.
    A repeated ``client_request_id`` returns the original expense untouched.
    """
    amount = parse_amount(amount)
    category = require_text(category, 'category')

    if client_request_id:
        existing = storage.get_expense_by_request_id(user.id, client_request_id)
        if existing is not None:
            logger.info('Duplicate expense request %s for user %s ignored', client_request_id, user.id)
            return existing, None

    expense = storage.create_expense(user.id, amount, category, description=(description or '').strip(),
                                     emotional_tag=emotional_tag, client_request_id=client_request_id)

    budget = storage.get_budget_by_category(user.id, category, storage.current_month(today))
    if budget is not None:
        storage.update_budget(budget, spent=quantize((budget.spent or 0) + amount))
        logger.debug('Budget %s spent now %s', budget.id, budget.spent)
    return expense, budget


def remaining_budget(user_id, category, today=None):
    budget = storage.get_budget_by_category(user_id, category, storage.current_month(today))
    if budget is None:
        return quantize(0)
    return quantize(budget.monthly_limit - (budget.spent or 0))
