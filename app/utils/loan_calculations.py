import re
from datetime import datetime, timezone
from decimal import Decimal, ROUND_DOWN

BPS_DENOMINATOR = 10_000
SECONDS_PER_DAY = 86_400
DAYS_PER_YEAR = 365

# amounts mirror on-chain uint256 values
MAX_WEI = 2 ** 256 - 1

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")


def utcnow() -> datetime:
    """Naive UTC timestamp; the DB columns are timezone-less."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_address(address) -> str:
    """Lower-case and validate an EVM address. Returns "" for malformed input."""
    if address is None:
        return ""
    addr = str(address).strip().lower()
    return addr if _ADDRESS_RE.match(addr) else ""


def parse_wei(raw) -> int:
    """
    Strict decimal-string to Wei. Raises ValueError for anything that is not a
    plain run of digits or does not fit in a uint256.
    """
    text = str(raw).strip()
    if not text.isdecimal():
        raise ValueError(f"not a decimal integer: {raw!r}")
    value = int(text)
    if value > MAX_WEI:
        raise ValueError("amount exceeds uint256")
    return value


def is_within_ltv(principal_wei: int, collateral_value_wei: int, max_ltv_percent: int) -> bool:
    """
    principal <= floor(collateral * pct / 100), without any division:
      principal * 100 <= collateral * pct

    Example:
      collateral=10**19, pct=80 => max principal 8 * 10**18 (inclusive)
    """
    return principal_wei * 100 <= collateral_value_wei * max_ltv_percent


def max_principal_wei(collateral_value_wei: int, max_ltv_percent: int) -> int:
    return collateral_value_wei * max_ltv_percent // 100


def ltv_bps(principal_wei: int, collateral_value_wei: int) -> int:
    if collateral_value_wei <= 0:
        return 0
    return principal_wei * BPS_DENOMINATOR // collateral_value_wei


def ltv_ratio(principal_wei: int, collateral_value_wei: int) -> Decimal:
    if collateral_value_wei <= 0:
        return Decimal("0")
    return (Decimal(principal_wei) / Decimal(collateral_value_wei)).quantize(
        Decimal("0.0001"), rounding=ROUND_DOWN
    )


def projected_interest_wei(principal_wei: int, rate_bps: int, duration_seconds: int) -> int:
    """
    SIMPLE, PRO-RATED:
      interest = principal * rate_bps/10000 * (duration_seconds/86400)/365

    Rounded down to whole Wei; single integer division at the end.
    """
    numerator = principal_wei * rate_bps * duration_seconds
    denominator = BPS_DENOMINATOR * SECONDS_PER_DAY * DAYS_PER_YEAR
    return numerator // denominator


def duration_days(duration_seconds: int) -> Decimal:
    return (Decimal(duration_seconds) / Decimal(SECONDS_PER_DAY)).quantize(
        Decimal("0.01"), rounding=ROUND_DOWN
    )


def bps_to_percent(rate_bps) -> Decimal:
    return (Decimal(rate_bps) / Decimal("100")).quantize(Decimal("0.01"))
