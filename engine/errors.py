from decimal import Decimal


class ValidationError(ValueError):
    """Request data failed a domain check (rendered as HTTP 400)."""


class LLMError(RuntimeError):
    """The language model could not produce a usable answer."""


class InsufficientCoins(Exception):
    """The user cannot afford a chat turn."""

    def __init__(self, balance, cost):
        self.balance = Decimal(balance)
        self.cost = Decimal(cost)
        self.coins_needed = self.cost - self.balance
        super().__init__(
            f'You need {self.coins_needed:.2f} more SmartCoins to chat with Smartie '
            f'(each message costs {self.cost:.2f}).'
        )
