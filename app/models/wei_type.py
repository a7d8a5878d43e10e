# app/models/wei_type.py
from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

# uint256 max has 78 decimal digits
WEI_DIGITS = 78


class WeiAmount(TypeDecorator):
    """
    Exact non-negative integer stored as a zero-padded decimal string.

    Padding keeps lexicographic order == numeric order, so range filters and
    ORDER BY work on every backend without going through a float.
    """

    impl = String(WEI_DIGITS)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            value = int(str(value))
        if value < 0:
            raise ValueError("Wei amounts cannot be negative")
        text = str(value)
        if len(text) > WEI_DIGITS:
            # longer strings would sort wrong against padded ones
            raise ValueError(f"Wei amount is longer than {WEI_DIGITS} digits")
        return text.zfill(WEI_DIGITS)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)
