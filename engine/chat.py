"""Smartie, the chat coach.

Each turn costs SmartCoins. The message goes to the language model together
with a snapshot of the user's money and a set of callable actions; when the
model is unreachable a keyword matcher performs the same actions and falls
back to canned coaching essays.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
import storage
from config import EXPENSE_CATEGORIES, GOAL_ICONS
from engine.budget import record_expense
from engine.errors import InsufficientCoins, LLMError, ValidationError
from engine.money import parse_amount, quantize, require_text
from models import money_str, utcnow

logger = logging.getLogger(__name__)

AVAILABLE_FUNCTIONS = [
    {
        'name': 'add_expense',
        'description': "Add a new expense to the user's spending tracker",
        'parameters': {
            'type': 'object',
            'properties': {
                'amount': {'type': 'number', 'description': 'The amount spent (positive number)'},
                'description': {'type': 'string', 'description': 'Description of the expense'},
                'category': {'type': 'string', 'enum': EXPENSE_CATEGORIES, 'description': 'Category of the expense'},
            },
            'required': ['amount', 'description', 'category'],
        },
    },
    {
        'name': 'create_goal',
        'description': 'Create a new savings goal for the user',
        'parameters': {
            'type': 'object',
            'properties': {
                'title': {'type': 'string', 'description': 'Name/title of the goal'},
                'targetAmount': {'type': 'number', 'description': 'Target amount to save'},
                'targetDate': {'type': 'string', 'description': 'Target date in YYYY-MM-DD format (optional)'},
                'icon': {'type': 'string', 'enum': GOAL_ICONS, 'description': 'Icon category for the goal'},
            },
            'required': ['title', 'targetAmount'],
        },
    },
    {
        'name': 'add_money_to_goal',
        'description': 'Add money to an existing savings goal',
        'parameters': {
            'type': 'object',
            'properties': {
                'goalId': {'type': 'string', 'description': 'ID of the goal to add money to'},
                'amount': {'type': 'number', 'description': 'Amount to add to the goal'},
            },
            'required': ['goalId', 'amount'],
        },
    },
    {
        'name': 'reset_savings_tree',
        'description': 'Reset all savings goals to zero (fresh start)',
        'parameters': {
            'type': 'object',
            'properties': {'userId': {'type': 'string', 'description': 'User ID to reset goals for'}},
            'required': ['userId'],
        },
    },
    {
        'name': 'get_financial_summary',
        'description': 'Get current financial overview including budgets, expenses, and goals',
        'parameters': {
            'type': 'object',
            'properties': {'userId': {'type': 'string', 'description': 'User ID to get summary for'}},
            'required': ['userId'],
        },
    },
]

SYSTEM_PROMPT = """You are Smartie, a friendly, enthusiastic, and knowledgeable AI financial coach. You're part of the SmartSpend app and help users with their financial wellness journey.

Your personality:
- Warm, encouraging, and supportive
- Use emojis appropriately (but not excessively)
- Speak in a friendly, conversational tone
- Be genuinely helpful and actionable
- Celebrate user achievements and progress
- Provide specific, practical advice

When a user asks you to perform actions like:
- "Log £20 for food" → use add_expense function
- "Create a goal for a laptop" → use create_goal function
- "Add £50 to my vacation fund" → use add_money_to_goal function
- "Reset my tree" → use reset_savings_tree function
- "Show me my spending" → use get_financial_summary function

Always try to understand user intent and call the appropriate functions when requested.

"""

CATEGORY_KEYWORDS = {
    'food': ('food', 'lunch', 'dinner', 'breakfast', 'grocer', 'coffee', 'restaurant', 'meal', 'takeaway', 'snack'),
    'transport': ('transport', 'bus', 'train', 'taxi', 'uber', 'fuel', 'petrol', 'parking', 'tube'),
    'shopping': ('shopping', 'shop', 'clothes', 'shoes', 'amazon', 'gift'),
    'bills': ('bill', 'rent', 'electric', 'utilit', 'phone', 'internet', 'insurance'),
    'entertainment': ('entertainment', 'movie', 'cinema', 'netflix', 'game', 'concert', 'spotify', 'drinks'),
    'health': ('health', 'gym', 'doctor', 'pharmacy', 'medicine', 'dentist'),
}

AMOUNT = r'[£$€₹]?\s?(\d+(?:\.\d{1,2})?)'
ADD_TO_GOAL_RE = re.compile(rf'\b(?:add|put|save|move)\s+{AMOUNT}\s+(?:to|into|towards)\s+(?:my\s+|the\s+)?(.+)', re.I)
LOG_EXPENSE_RE = re.compile(rf'\b(?:log|add|spent|record|track)\s+{AMOUNT}\s+(?:for|on)\s+(.+)', re.I)
CREATE_GOAL_RE = re.compile(
    rf'\bcreate\s+(?:a\s+)?(?:new\s+)?(?:savings\s+)?goal\s+(?:for|to\s+buy|to\s+save\s+for)\s+(?:a\s+|an\s+|my\s+)?'
    rf'(.+?)\s+(?:of\s+|for\s+|worth\s+)?{AMOUNT}\s*$', re.I)
RESET_RE = re.compile(r'\breset\b.*\b(?:tree|goals|savings)\b', re.I)
SUMMARY_RE = re.compile(r'\b(?:summary|overview|show me my spending|how am i doing)\b', re.I)

CANNED_ESSAYS = [
    (('millionaire', 'rich', 'wealthy'), (
        "Becoming a millionaire is less about a lucky break and more about time and habits. 🌱\n\n"
        "1. Spend less than you earn, every month, without exception.\n"
        "2. Automate saving so it happens before you can spend it.\n"
        "3. Invest steadily in low-cost, diversified index funds and let compounding work for decades.\n"
        "4. Avoid high-interest debt; it compounds against you just as fast.\n"
        "5. Grow your income: skills, promotions and side projects move the needle more than cutting coffee.\n\n"
        "Saving £500 a month at a 7% average return grows to roughly £1 million in about 40 years. "
        "Start small, start now, and keep going!"
    )),
    (('invest', 'stock', 'shares', 'pension', 'isa'), (
        "Investing lets your money work for you. 📈 A few solid ground rules:\n\n"
        "• Build an emergency fund of 3-6 months of expenses before you invest.\n"
        "• Use tax-efficient wrappers like an ISA or your workplace pension first, especially if your employer matches.\n"
        "• Prefer broad, low-cost index funds over picking individual stocks.\n"
        "• Invest regularly (pound-cost averaging) and ignore short-term noise.\n"
        "• Only invest money you won't need for at least five years.\n\n"
        "This is general education, not personal advice, so check your own situation before you commit."
    )),
    (('debt', 'loan', 'credit card', 'overdraft', 'owe'), (
        "Let's tackle that debt together. 💪\n\n"
        "• List every debt with its balance, interest rate and minimum payment.\n"
        "• Always pay the minimums so nothing goes into arrears.\n"
        "• Put every spare pound on the highest-interest debt first (the avalanche method), "
        "or the smallest balance first if quick wins keep you motivated (the snowball method).\n"
        "• Look at 0% balance transfers if you can clear the balance within the offer period.\n"
        "• If repayments feel unmanageable, free debt charities can help you build a plan.\n\n"
        "Every payment is progress, so celebrate each one!"
    )),
    (('budget', 'spending plan', 'overspend'), (
        "A budget is simply a plan for your money before it arrives. 📝 Try the 50/30/20 rule:\n\n"
        "• 50% for needs: rent, bills, groceries, transport.\n"
        "• 30% for wants: eating out, hobbies, shopping.\n"
        "• 20% for savings and paying down debt.\n\n"
        "Set a monthly limit for each category in SmartSpend, log expenses as they happen, and check in weekly. "
        "If a category keeps running over, adjust the plan rather than giving up on it."
    )),
    (('save', 'saving', 'savings', 'emergency fund'), (
        "Saving gets easier when it's automatic. 🐷\n\n"
        "• Pay yourself first: move money to savings on payday, not at the end of the month.\n"
        "• Start with a starter emergency fund of £1,000, then build to 3-6 months of expenses.\n"
        "• Give every goal a name and a target date; it makes it real.\n"
        "• Use the 24-hour rule for non-essential purchases.\n"
        "• Review subscriptions every few months and cancel what you don't use.\n\n"
        "Create a goal in SmartSpend and watch your savings tree grow! 🌳"
    )),
]

DEFAULT_REPLY = (
    "Hi, I'm Smartie! 👋 I can help you with budgeting, saving, investing, and smarter spending decisions. "
    "Try things like \"Log £20 for food\", \"Create a goal for a laptop £800\", \"Add £50 to my vacation fund\" "
    "or \"Show me my spending\"."
)


@dataclass
class ChatReply:
    message: str
    source: str  # llm or fallback
    coins_used: Decimal
    remaining_coins: Decimal
    action_performed: dict | None = None
    timestamp: str = field(default_factory=lambda: utcnow().isoformat())

    def to_dict(self):
        data = {
            'message': self.message,
            'timestamp': self.timestamp,
            'coinsUsed': float(self.coins_used),
            'remainingCoins': float(self.remaining_coins),
        }
        if self.action_performed:
            data['actionPerformed'] = self.action_performed
        return data


def build_user_context(user, today=None) -> str:
    month = storage.current_month(today)
    budgets = storage.get_budgets_by_user(user.id, month=month)
    expenses = storage.get_expenses_by_user(user.id)[:10]
    goals = storage.get_goals_by_user(user.id)
    snapshot = {
        'userId': user.id,
        'name': user.name,
        'currency': user.currency,
        'monthlyIncome': money_str(user.monthly_income),
        'smartCoins': float(user.smart_coins or 0),
        'budgets': [b.to_dict() for b in budgets],
        'recentExpenses': [e.to_dict() for e in expenses],
        'goals': [g.to_dict() for g in goals],
    }
    return "USER'S CURRENT FINANCIAL DATA:\n" + json.dumps(snapshot, indent=2)


def categorize(text) -> str:
    text = text.lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(k in text for k in keywords):
            return category
    return 'other'


# ---------------------- Actions ----------------------
def financial_summary(user, today=None) -> str:
    month = storage.current_month(today)
    budgets = storage.get_budgets_by_user(user.id, month=month)
    goals = storage.get_goals_by_user(user.id)
    spent = sum((e.amount for e in storage.get_expenses_by_user(user.id)
                 if e.created_at.strftime('%Y-%m') == month), Decimal('0'))

    lines = [f"Here's your snapshot for {month} 📊", f"• Spent this month: {money_str(spent)}"]
    for b in budgets:
        left = b.monthly_limit - (b.spent or 0)
        lines.append(f"• {b.category}: {money_str(b.spent)} of {money_str(b.monthly_limit)} used ({money_str(left)} left)")
    if not budgets:
        lines.append('• No budgets set for this month yet.')
    for g in goals:
        lines.append(f"• Goal {g.title}: {money_str(g.current_amount)} / {money_str(g.target_amount)}"
                     + (' ✅' if g.completed else ''))
    if not goals:
        lines.append('• No savings goals yet.')
    return '\n'.join(lines)


def _find_goal(user, goal_id=None, title=None):
    goals = storage.get_goals_by_user(user.id)
    if goal_id:
        for g in goals:
            if g.id == goal_id:
                return g
    if title:
        wanted = title.lower()
        for g in goals:
            name = g.title.lower()
            if name in wanted or wanted in name:
                return g
    return None


def reset_goals(user_id):
    goals = storage.get_goals_by_user(user_id)
    for goal in goals:
        storage.update_goal(goal, current_amount=Decimal('0'))
    return goals


def add_money_to_goal(goal, amount):
    amount = parse_amount(amount)
    return storage.update_goal(goal, current_amount=quantize((goal.current_amount or 0) + amount))


def _text(args, key):
    value = args.get(key)
    return '' if value is None else str(value).strip()


def execute_action(user, name, args, today=None):
    """Run a coach action. Returns ``(reply_text, action_performed_or_None)``."""
    if not isinstance(args, dict):
        logger.warning('Action %s got non-object arguments: %r', name, args)
        return "Sorry, I couldn't understand the details for that. Could you rephrase?", None
    try:
        if name == 'add_expense':
            description = _text(args, 'description') or _text(args, 'category') or 'Expense'
            expense, budget = record_expense(user, args.get('amount'), _text(args, 'category') or 'other',
                                             description, today=today)
            text = f"Done! I've logged {money_str(expense.amount)} for {expense.category} ({expense.description}). 🧾"
            if budget is not None:
                left = budget.monthly_limit - budget.spent
                text += f" You have {money_str(left)} left in your {budget.category} budget this month."
            return text, {'type': 'add_expense', 'data': expense.to_dict()}

        if name == 'create_goal':
            title = require_text(_text(args, 'title'), 'title')
            target = parse_amount(args.get('targetAmount'), 'targetAmount')
            target_date = None
            if _text(args, 'targetDate'):
                try:
                    target_date = date.fromisoformat(_text(args, 'targetDate'))
                except ValueError:
                    raise ValidationError('targetDate must be YYYY-MM-DD')
            goal = storage.create_goal(user.id, title, target, target_date=target_date,
                                       icon=_text(args, 'icon') or None)
            return (f"Your new goal \"{goal.title}\" is set with a target of {money_str(goal.target_amount)}. 🎯 "
                    "Let's start growing it!"), {'type': 'create_goal', 'data': goal.to_dict()}

        if name == 'add_money_to_goal':
            goal = _find_goal(user, goal_id=_text(args, 'goalId'), title=_text(args, 'goalTitle'))
            if goal is None:
                return "I couldn't find that goal. Which one should I add the money to?", None
            goal = add_money_to_goal(goal, args.get('amount'))
            text = f"Added to \"{goal.title}\": you're now at {money_str(goal.current_amount)} of {money_str(goal.target_amount)}. 🌱"
            if goal.completed:
                text += ' Goal reached, amazing work! 🎉'
            return text, {'type': 'add_money_to_goal', 'data': goal.to_dict()}

        if name == 'reset_savings_tree':
            goals = reset_goals(user.id)
            text = f"Fresh start! I've reset {len(goals)} goal(s) to zero. 🌳"
            return text, {'type': 'reset_savings_tree', 'data': {'goalsReset': len(goals)}}

        if name == 'get_financial_summary':
            return financial_summary(user, today), {'type': 'get_financial_summary', 'data': None}
    except ValidationError as e:
        logger.info('Chat action %s rejected for user %s: %s', name, user.id, e)
        return f"I couldn't do that: {e}.", None

    logger.warning('Model asked for unknown action %s', name)
    return "Sorry, I don't know how to do that yet.", None


# ---------------------- Fallback ----------------------
def match_action(message):
    """Map a raw message to ``(action_name, args)`` or None."""
    text = message.strip()

    m = CREATE_GOAL_RE.search(text)
    if m:
        return 'create_goal', {'title': m.group(1).strip(' .!').title(), 'targetAmount': m.group(2)}

    m = ADD_TO_GOAL_RE.search(text)
    if m:
        title = re.sub(r'\b(?:goal|fund|savings)\b', '', m.group(2), flags=re.I).strip(' .!')
        return 'add_money_to_goal', {'goalTitle': title or m.group(2), 'amount': m.group(1)}

    m = LOG_EXPENSE_RE.search(text)
    if m:
        what = m.group(2).strip(' .!')
        return 'add_expense', {'amount': m.group(1), 'category': categorize(what), 'description': what}

    if RESET_RE.search(text):
        return 'reset_savings_tree', {}
    if SUMMARY_RE.search(text):
        return 'get_financial_summary', {}
    return None


def canned_reply(message) -> str:
    text = message.lower()
    for keywords, essay in CANNED_ESSAYS:
        if any(re.search(rf'\b{re.escape(k)}', text) for k in keywords):
            return essay
    return DEFAULT_REPLY


def fallback_reply(user, message, today=None):
    matched = match_action(message)
    if matched is not None:
        name, args = matched
        return execute_action(user, name, args, today)
    return canned_reply(message), None


# ---------------------- Entry point ----------------------
def chat(user, message, llm=None, coin_cost=Decimal('0.5'), today=None) -> ChatReply:
    """Answer one chat turn and charge for it.

    Raises ``InsufficientCoins`` before doing anything when the balance is
    below ``coin_cost``. Only flushes; the caller commits the coin deduction
    and any action side effects together.
    """
    message = require_text(message, 'message')
    coin_cost = Decimal(coin_cost)
    balance = Decimal(user.smart_coins or 0)
    if balance < coin_cost:
        raise InsufficientCoins(balance, coin_cost)

    reply, action, source = None, None, 'llm'
    if llm is not None:
        try:
            text, calls = llm.chat(SYSTEM_PROMPT + build_user_context(user, today), message,
                                   tools=AVAILABLE_FUNCTIONS)
            parts = [text.strip()] if text.strip() else []
            for name, args in calls:
                result_text, result_action = execute_action(user, name, args, today)
                parts.append(result_text)
                action = result_action or action
            reply = '\n\n'.join(parts)
        except LLMError as e:
            logger.warning('Chat LLM failed for user %s, using fallback: %s', user.id, e)
            reply, action = None, None

    if reply is None:
        source = 'fallback'
        reply, action = fallback_reply(user, message, today)

    storage.update_user(user, smart_coins=quantize(balance - coin_cost))
    return ChatReply(message=reply, source=source, coins_used=coin_cost,
                     remaining_coins=user.smart_coins, action_performed=action)
