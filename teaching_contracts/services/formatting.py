import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from num2words import num2words

logger = logging.getLogger(__name__)

KHMER_DIGITS = ['០', '១', '២', '៣', '៤', '៥', '៦', '៧', '៨', '៩']
_KHMER_TABLE = str.maketrans({str(i): digit for i, digit in enumerate(KHMER_DIGITS)})


def to_khmer_digits(value):
    """Replace every ASCII digit with its Khmer glyph, digit for digit.

    Expects ASCII-digit input. Text that already holds Khmer digits comes back
    unchanged, so a second pass is a no-op only because nothing is left to map.
    """
    if value is None:
        return ''
    return str(value).translate(_KHMER_TABLE)


def round_riel(amount):
    return int(Decimal(amount).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def format_usd(amount):
    return f"{Decimal(amount).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,}"


def format_khr(amount):
    return f"{int(amount):,}"


def format_exchange_rate(rate):
    value = Decimal(str(rate))
    if value == value.to_integral_value():
        return format_khr(value)
    return f"{value.normalize():,}"


def format_rate(rate):
    if rate is None:
        return ''
    value = Decimal(rate)
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"


def format_date(value):
    if not value:
        return ''
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, str):
        try:
            value = datetime.strptime(value, '%Y-%m-%d').date()
        except ValueError as e:
            logger.warning(f"Error formatting date '{value}': {str(e)}")
            return value
    if not isinstance(value, date):
        return str(value)

    day = value.day
    if 11 <= day % 100 <= 13:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(day % 10, 'th')
    return f"{day}{suffix} {value.strftime('%B')} {value.year}"


def riel_to_words(amount):
    try:
        amount = int(amount)
        if amount <= 0:
            return "Zero Riels only"
        return f"{num2words(amount, lang='en').title()} Riels only"
    except (TypeError, ValueError, OverflowError) as e:
        logger.error(f"Error converting number to words: {str(e)}")
        return ''
