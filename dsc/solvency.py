"""
solvency.py - Collateral valuation and health factor

ARCHITECTURE:
=============

1. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take all inputs explicitly (price rounds, amounts, decimals)
   - No registry, no account book, no oracle calls
   - Usable for what-if analysis without touching stored state

2. SolvencyEngine:
   - Reads prices through stale_checked_round() and balances from the
     AccountBook, then delegates to the pure functions
   - assert_healthy() is the gate every mutating operation ends with

Key Formulas:
    price_18     = answer * 10**(18 - feed_decimals)
    usd_value    = price_18 * amount // 10**token_decimals
    token_amount = usd * 10**token_decimals // price_18
    health       = (collateral_usd * LIQUIDATION_THRESHOLD // LIQUIDATION_PRECISION)
                   * PRECISION // debt                      (MAX when debt == 0)

Rounding: every division truncates toward zero. USD values, and therefore
health factors, are never overstated; an account sitting exactly on the
threshold can be pushed below it by one unit of truncation but never above.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Callable

from .accounts import AccountBook, CollateralRegistry
from .core import (
    PriceFeed, PriceRound, AccountInformation,
    HealthFactorBroken, OracleUnavailable,
    PRECISION, LIQUIDATION_THRESHOLD, LIQUIDATION_PRECISION,
    MIN_HEALTH_FACTOR, MAX_HEALTH_FACTOR, ORACLE_TIMEOUT,
)
from .price_feed import stale_checked_round


# ============================================================================
# PURE CALCULATION FUNCTIONS - No state, all inputs explicit
# ============================================================================

PRECISION_DECIMALS = 18


def calculate_price(price_round: PriceRound) -> int:
    """
    Rescale a feed answer to 18-decimal USD.

    For the standard 8-decimal feeds this multiplies by
    ADDITIONAL_FEED_PRECISION (1e10).
    """
    if price_round.decimals <= PRECISION_DECIMALS:
        return price_round.answer * 10**(PRECISION_DECIMALS - price_round.decimals)
    return price_round.answer // 10**(price_round.decimals - PRECISION_DECIMALS)


def calculate_usd_value(price_round: PriceRound, amount: int, token_decimals: int = 18) -> int:
    """
    USD value (18 decimals) of amount raw units of a token.

    PURE FUNCTION - truncates toward zero.

    Example:
        # 10 tokens at $10 -> $100
        calculate_usd_value(round_at_10_usd, 10 * 10**18) == 100 * 10**18
    """
    return calculate_price(price_round) * amount // 10**token_decimals


def calculate_token_amount_from_usd(price_round: PriceRound, usd_amount: int, token_decimals: int = 18) -> int:
    """
    Raw token units worth usd_amount (18 decimals) at the round's price.

    PURE FUNCTION - inverse of calculate_usd_value, truncates toward zero.

    Raises:
        OracleUnavailable: If the round rescales to a zero price
    """
    price = calculate_price(price_round)
    if price <= 0:
        raise OracleUnavailable(
            f"Round {price_round.round_id} answer {price_round.answer} at {price_round.decimals} decimals is below 1e-18 USD"
        )
    return usd_amount * 10**token_decimals // price


def calculate_health_factor(total_dsc_minted: int, collateral_value_usd: int) -> int:
    """
    Health factor (18 decimals) of a position.

    PURE FUNCTION - All inputs explicit.

    Returns MAX_HEALTH_FACTOR when there is no debt. Below MIN_HEALTH_FACTOR
    (1e18) the position is liquidatable.

    Example:
        calculate_health_factor(100, 100) == 5 * 10**17   # 0.5, liquidatable
        calculate_health_factor(50 * 10**18, 100 * 10**18) == 10**18
    """
    if total_dsc_minted == 0:
        return MAX_HEALTH_FACTOR
    collateral_adjusted_for_threshold = (
        collateral_value_usd * LIQUIDATION_THRESHOLD // LIQUIDATION_PRECISION
    )
    return collateral_adjusted_for_threshold * PRECISION // total_dsc_minted


# ============================================================================
# SOLVENCY ENGINE
# ============================================================================

class SolvencyEngine:
    """
    Read side of the engine: prices, collateral values and health factors.

    Never mutates anything. Subclasses add the mutating entry points and call
    assert_healthy() after every state change.
    """

    def __init__(
        self,
        registry: CollateralRegistry,
        accounts: AccountBook,
        price_feed: PriceFeed,
        clock: Callable[[], datetime],
        oracle_timeout: timedelta = ORACLE_TIMEOUT,
    ):
        self._registry = registry
        self._accounts = accounts
        self._price_feed = price_feed
        self._clock = clock
        self.oracle_timeout = oracle_timeout

    # ========================================================================
    # PRICES
    # ========================================================================

    def price_round(self, asset: str) -> PriceRound:
        """
        Latest trusted round for asset.

        Raises:
            UnknownAsset: If asset is not registered
            OracleUnavailable: If the round is non-positive, incomplete or stale,
                or rescales to a zero 18-decimal price
        """
        feed_id = self._registry.price_feed_id(asset)
        price_round = stale_checked_round(self._price_feed, feed_id, self._clock(), self.oracle_timeout)
        if calculate_price(price_round) <= 0:
            raise OracleUnavailable(
                f"{feed_id} answer {price_round.answer} at {price_round.decimals} decimals rounds to a zero price"
            )
        return price_round

    def usd_value(self, asset: str, amount: int) -> int:
        """USD value (18 decimals) of amount raw units of asset."""
        token = self._registry.token(asset)
        return calculate_usd_value(self.price_round(asset), amount, token.decimals)

    def token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        """Raw units of asset worth usd_amount (18 decimals) at the current price."""
        token = self._registry.token(asset)
        return calculate_token_amount_from_usd(self.price_round(asset), usd_amount, token.decimals)

    # ========================================================================
    # POSITIONS
    # ========================================================================

    def account_collateral_value_usd(self, user: str) -> int:
        """
        Sum of the USD value of every registered asset user has deposited,
        in registration order. Every registered feed is read, so one
        unavailable feed makes the valuation fail.
        """
        total = 0
        for asset in self._registry:
            total += self.usd_value(asset, self._accounts.collateral_balance(user, asset))
        return total

    def account_info(self, user: str) -> AccountInformation:
        return AccountInformation(
            total_dsc_minted=self._accounts.dsc_minted(user),
            collateral_value_usd=self.account_collateral_value_usd(user),
        )

    def health_factor(self, user: str) -> int:
        """
        Current health factor of user.

        Debt-free accounts are MAX_HEALTH_FACTOR without reading any price.
        """
        if self._accounts.dsc_minted(user) == 0:
            return MAX_HEALTH_FACTOR
        info = self.account_info(user)
        return calculate_health_factor(info.total_dsc_minted, info.collateral_value_usd)

    @staticmethod
    def compute_health_factor(total_dsc_minted: int, collateral_value_usd: int) -> int:
        """What-if health factor for arbitrary inputs; touches no state."""
        return calculate_health_factor(total_dsc_minted, collateral_value_usd)

    def assert_healthy(self, user: str) -> None:
        """
        Raises:
            HealthFactorBroken: If user's health factor is below MIN_HEALTH_FACTOR
        """
        health_factor = self.health_factor(user)
        if health_factor < MIN_HEALTH_FACTOR:
            raise HealthFactorBroken(health_factor)
