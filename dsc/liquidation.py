"""
liquidation.py - Forced partial closure of unhealthy positions

Anyone holding DSC may repay part of an unhealthy user's debt and receive
the equivalent collateral plus a LIQUIDATION_BONUS percent reward, taken
from the user's remaining deposit.

ARCHITECTURE:
=============

1. calculate_liquidation() - pure quote: how much is seized and where the
   health factor ends up, from explicit inputs only
2. LiquidationEngine.quote_liquidation() - the same quote against live state
3. LiquidationEngine.liquidate() - executes it inside the transactional,
   non-reentrant wrapper inherited from PositionManager

Seizure never exceeds the user's deposit: if principal plus bonus is more
than the user holds in that asset, the liquidation fails with
InsufficientCollateral instead of seizing less. There is no reserve fund to
top the bonus up.
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import (
    PriceRound, AccountInformation,
    ZeroAmount, HealthFactorOk, HealthFactorNotImproved,
    LIQUIDATION_BONUS, LIQUIDATION_PRECISION, MIN_HEALTH_FACTOR,
    from_fixed,
)
from .positions import PositionManager, _require_positive
from .solvency import (
    calculate_usd_value, calculate_token_amount_from_usd, calculate_health_factor,
)


@dataclass(frozen=True, slots=True)
class LiquidationQuote:
    """
    Outcome of covering debt_to_cover of one user's debt with one asset.

    Amounts of collateral are raw token units; health factors are 18-decimal.
    """
    asset: str
    debt_to_cover: int
    collateral_seized: int
    bonus: int
    total_seized: int
    available_collateral: int
    starting_health_factor: int
    ending_health_factor: int

    def __post_init__(self):
        if self.total_seized != self.collateral_seized + self.bonus:
            raise ValueError("total_seized must equal collateral_seized + bonus")

    @property
    def liquidatable(self) -> bool:
        return self.starting_health_factor < MIN_HEALTH_FACTOR

    @property
    def sufficient_collateral(self) -> bool:
        return self.total_seized <= self.available_collateral

    @property
    def improves(self) -> bool:
        return self.ending_health_factor > self.starting_health_factor


def calculate_liquidation(
    asset: str,
    price_round: PriceRound,
    debt_to_cover: int,
    available_collateral: int,
    account: AccountInformation,
    token_decimals: int = 18,
) -> LiquidationQuote:
    """
    Quote a liquidation.

    PURE FUNCTION - All inputs explicit.

    Args:
        asset: Collateral asset being seized
        price_round: Trusted round for the asset
        debt_to_cover: DSC (18 decimals) the liquidator repays
        available_collateral: User's deposit of asset (raw units)
        account: User's debt and total collateral value before liquidation
        token_decimals: Decimals of the asset

    Returns:
        LiquidationQuote. If the deposit cannot cover the seizure, the ending
        health factor is computed as if the whole deposit were taken.

    Example:
        # $80 of collateral at $8 against 50 DSC, cover 20 DSC:
        # 2.5 units + 0.25 bonus = 2.75 units seized, health 0.8 -> 0.9666...
    """
    if debt_to_cover <= 0:
        raise ZeroAmount(f"Debt to cover must be more than zero, got {debt_to_cover}")

    collateral_seized = calculate_token_amount_from_usd(price_round, debt_to_cover, token_decimals)
    bonus = collateral_seized * LIQUIDATION_BONUS // LIQUIDATION_PRECISION
    total_seized = collateral_seized + bonus

    remaining = max(available_collateral - total_seized, 0)
    ending_collateral_usd = (
        account.collateral_value_usd
        - calculate_usd_value(price_round, available_collateral, token_decimals)
        + calculate_usd_value(price_round, remaining, token_decimals)
    )
    ending_debt = max(account.total_dsc_minted - debt_to_cover, 0)

    return LiquidationQuote(
        asset=asset,
        debt_to_cover=debt_to_cover,
        collateral_seized=collateral_seized,
        bonus=bonus,
        total_seized=total_seized,
        available_collateral=available_collateral,
        starting_health_factor=calculate_health_factor(
            account.total_dsc_minted, account.collateral_value_usd
        ),
        ending_health_factor=calculate_health_factor(ending_debt, ending_collateral_usd),
    )


class LiquidationEngine(PositionManager):
    """PositionManager plus third-party liquidation."""

    def quote_liquidation(self, asset: str, user: str, debt_to_cover: int) -> LiquidationQuote:
        """Quote liquidate(asset, user, debt_to_cover) against current state. Mutates nothing."""
        token = self._registry.token(asset)
        return calculate_liquidation(
            asset=asset,
            price_round=self.price_round(asset),
            debt_to_cover=debt_to_cover,
            available_collateral=self._accounts.collateral_balance(user, asset),
            account=self.account_info(user),
            token_decimals=token.decimals,
        )

    def liquidate(self, liquidator: str, asset: str, user: str, debt_to_cover: int) -> LiquidationQuote:
        """
        Repay debt_to_cover of user's debt with liquidator's DSC and seize
        the equivalent asset collateral plus the bonus.

        The liquidator must hold debt_to_cover DSC and have approved the
        engine to pull it.

        Returns:
            The executed LiquidationQuote (ending_health_factor as observed)

        Raises:
            ZeroAmount: debt_to_cover is not positive
            UnknownAsset: asset is not registered
            HealthFactorOk: user is not below MIN_HEALTH_FACTOR
            InsufficientCollateral: user's deposit cannot fund principal + bonus
            InsufficientDebt: debt_to_cover exceeds user's debt
            TransferFailed: seizure push or DSC pull failed
            HealthFactorNotImproved: user's health factor did not strictly rise
            HealthFactorBroken: liquidator's own position ends unhealthy
        """
        with self._transaction("liquidate"):
            _require_positive(debt_to_cover, "Debt to cover")
            token = self._registry.token(asset)

            starting_health_factor = self.health_factor(user)
            if starting_health_factor >= MIN_HEALTH_FACTOR:
                raise HealthFactorOk(starting_health_factor)

            collateral_seized = self.token_amount_from_usd(asset, debt_to_cover)
            bonus = collateral_seized * LIQUIDATION_BONUS // LIQUIDATION_PRECISION
            total_seized = collateral_seized + bonus
            available = self._accounts.collateral_balance(user, asset)

            self._redeem_collateral(asset, total_seized, user, liquidator)
            self._burn_dsc(debt_to_cover, user, liquidator)

            ending_health_factor = self.health_factor(user)
            if ending_health_factor <= starting_health_factor:
                raise HealthFactorNotImproved(starting_health_factor, ending_health_factor)

            self.assert_healthy(liquidator)

            if self.verbose:
                print(
                    f"⚡ LIQUIDATED {user}: {from_fixed(debt_to_cover)} DSC covered by {liquidator}, "
                    f"{from_fixed(total_seized, token.decimals)} {token.symbol} seized, "
                    f"health {from_fixed(starting_health_factor)} -> {from_fixed(ending_health_factor)}"
                )

            return LiquidationQuote(
                asset=asset,
                debt_to_cover=debt_to_cover,
                collateral_seized=collateral_seized,
                bonus=bonus,
                total_seized=total_seized,
                available_collateral=available,
                starting_health_factor=starting_health_factor,
                ending_health_factor=ending_health_factor,
            )
