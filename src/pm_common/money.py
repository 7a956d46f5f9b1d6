"""Integer money utilities.

All stakes, balances, payouts and ledger amounts are int minor units
(kobo for NGN). No float. Decimal appears only at the API boundary.
"""

from decimal import Decimal

_MINOR_PER_MAJOR = 100


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit Decimal to minor units: Decimal('12.50') -> 1250.

    Raises ValueError for more than two fractional digits.
    """
    scaled = amount * _MINOR_PER_MAJOR
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount has more than 2 decimal places: {amount}")
    return int(scaled)


def to_major_units(minor: int) -> Decimal:
    """Inverse of to_minor_units: 1250 -> Decimal('12.50')."""
    return (Decimal(minor) / _MINOR_PER_MAJOR).quantize(Decimal("0.01"))


def minor_to_display(minor: int, currency: str = "NGN") -> str:
    """Render minor units for humans: 650000 -> 'NGN 6,500.00', -1200 -> '-NGN 12.00'."""
    sign = "-" if minor < 0 else ""
    abs_minor = abs(minor)
    return f"{sign}{currency} {abs_minor // 100:,}.{abs_minor % 100:02d}"


def fee_from_bps(amount: int, fee_bps: int) -> int:
    """Platform fee on amount, floor division.

    fee = floor(amount * fee_bps / 10000)
    """
    if amount == 0 or fee_bps == 0:
        return 0
    return (amount * fee_bps) // 10000


def pro_rata(pool: int, part: int, whole: int) -> int:
    """floor(pool * part / whole); 0 when whole is 0.

    Shares of one pool never sum above pool.
    """
    if whole == 0 or pool == 0:
        return 0
    return (pool * part) // whole
