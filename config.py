"""
Configuration settings for the SmartSpend backend
"""
import os
from decimal import Decimal

# Database
DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///smartspend.db')
SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-me')

# LLM Settings
OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY', '')
OPENAI_MODEL = os.environ.get('OPENAI_MODEL', 'gpt-4o')
OPENAI_TIMEOUT = float(os.environ.get('OPENAI_TIMEOUT', '20'))
CHAT_MAX_TOKENS = 500
CHAT_TEMPERATURE = 0.7

# SmartCoins
STARTING_COINS = Decimal(os.environ.get('STARTING_COINS', '25'))
CHAT_COIN_COST = Decimal(os.environ.get('CHAT_COIN_COST', '0.5'))
DAILY_REWARD_COINS = 2
DAILY_REWARD_STREAK_BONUS = 1  # extra coin once the daily streak reaches 7
DAILY_REWARD_STREAK_THRESHOLD = 7
SHARE_REWARD_COINS = 30

# Expense categories the chat coach understands
EXPENSE_CATEGORIES = ['food', 'transport', 'shopping', 'bills', 'entertainment', 'health', 'other']
GOAL_ICONS = ['savings', 'house', 'car', 'vacation', 'education', 'emergency']

# Logging
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


def flask_config():
    """Mapping loaded into ``app.config`` by the application factory."""
    return {
        'SQLALCHEMY_DATABASE_URI': DATABASE_URL,
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': SECRET_KEY,
        'OPENAI_API_KEY': OPENAI_API_KEY,
        'OPENAI_MODEL': OPENAI_MODEL,
        'OPENAI_TIMEOUT': OPENAI_TIMEOUT,
        'CHAT_COIN_COST': CHAT_COIN_COST,
        'STARTING_COINS': STARTING_COINS,
        'LOG_LEVEL': LOG_LEVEL,
    }
