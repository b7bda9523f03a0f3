"""Pro-rata share math for harvests and donations.

Raw uint256 quantities are converted to float before dividing. The results are
reporting approximations, not settlement amounts, and are stored as such.
"""

from __future__ import annotations

import math

from alchemix_earnings.core.exceptions import DegenerateShareTotalError

# protocolFee() is a fixed-point ratio scaled by this factor (1000 == 10%)
PROTOCOL_FEE_SCALE = 10_000

# Donations are made in alUSD/alETH, both 18 decimals
DEBT_TOKEN_DECIMALS = 18


def protocol_fee_ratio(raw_fee: int) -> float:
    """Convert the raw on-chain protocol fee to a ratio in [0, 1]."""
    return float(raw_fee) / PROTOCOL_FEE_SCALE


def _finite(value: float, what: str) -> float:
    if not math.isfinite(value):
        raise DegenerateShareTotalError(f"{what} is not finite: {value!r}")
    return value


def _require_shares(total_shares: int) -> None:
    if total_shares == 0:
        raise DegenerateShareTotalError("total alchemist shares is zero")


def harvest_earnings(
    total_harvested: int,
    protocol_fee: float,
    shares: int,
    total_shares: int,
    decimals: int,
) -> float:
    """Depositor's portion of a harvest after the protocol fee, in token units.

    Args:
        total_harvested: Raw amount harvested for the yield token.
        protocol_fee: Fee ratio, see `protocol_fee_ratio`.
        shares: Depositor's raw share count.
        total_shares: Raw total shares of the yield token.
        decimals: Yield token decimals.

    Raises:
        DegenerateShareTotalError: `total_shares` is zero or the result is not finite.
    """
    _require_shares(total_shares)
    earnings = (
        float(total_harvested) * (1 - protocol_fee) * float(shares) / float(total_shares) / 10**decimals
    )
    return _finite(earnings, "harvest earnings")


def donation_share(debt_tokens_burned: int, shares: int, total_shares: int) -> float:
    """Depositor's portion of a donation in debt token units."""
    _require_shares(total_shares)
    received = float(debt_tokens_burned) * float(shares) / float(total_shares) / 10**DEBT_TOKEN_DECIMALS
    return _finite(received, "donation share")
