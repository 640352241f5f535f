from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from engine.errors import ValidationError

CENT = Decimal('0.01')


def quantize(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value, field='amount', allow_zero=False) -> Decimal:
    """Parse a request amount into a two-decimal ``Decimal``.

    Floats are routed through ``str`` so ``19.99`` stays ``19.99``.
    """
    if value is None or isinstance(value, bool) or value == '':
        raise ValidationError(f'{field} is required')
    try:
        amount = Decimal(str(value).strip().lstrip('£$€'))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field} must be a number')
    if not amount.is_finite():
        raise ValidationError(f'{field} must be a number')
    if amount < 0:
        raise ValidationError(f'{field} must be greater than zero')
    amount = quantize(amount)
    if amount == 0 and not allow_zero:
        raise ValidationError(f'{field} must be greater than zero')
    return amount


def parse_level(value, field) -> int:
    """Integer in [1, 10], as sent by the desire/urgency sliders."""
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer between 1 and 10')
    try:
        level = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer between 1 and 10')
    if isinstance(value, float) and value != level:
        raise ValidationError(f'{field} must be an integer between 1 and 10')
    if not 1 <= level <= 10:
        raise ValidationError(f'{field} must be between 1 and 10')
    return level


def require_text(value, field) -> str:
    text = (value or '').strip() if isinstance(value, str) else ''
    if not text:
        raise ValidationError(f'{field} is required')
    return text
