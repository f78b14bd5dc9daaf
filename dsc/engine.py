"""
engine.py - DSCEngine, the deployed surface of the system

DSCEngine wires a CollateralRegistry and a fresh AccountBook into a
LiquidationEngine and adds the read-only getters integrators query.

Example:
    engine = DSCEngine(ledger, [weth, wbtc], ["ETH_USD", "BTC_USD"], dsc, feed)
    dsc.transfer_ownership(deployer, engine.address)

    weth.approve("alice", engine.address, 10 * 10**18)
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10 * 10**18, 100 * 10**18)
    engine.health_factor("alice")
"""

from __future__ import annotations
from datetime import timedelta
from typing import Sequence, Tuple

from .accounts import AccountBook, CollateralRegistry
from .core import (
    CollateralToken, LiabilityToken, PriceFeed,
    ENGINE_WALLET, ORACLE_TIMEOUT,
    PRECISION, ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_THRESHOLD, LIQUIDATION_PRECISION, LIQUIDATION_BONUS,
    MIN_HEALTH_FACTOR,
)
from .ledger import Ledger
from .liquidation import LiquidationEngine


class DSCEngine(LiquidationEngine):
    """
    Overcollateralized stable coin engine.

    Args:
        ledger: Balance book the collateral tokens and the stable coin live on
        collateral_tokens: Accepted collateral, in registration order
        price_feed_ids: Feed id per collateral token (same length)
        dsc: The stable coin; must be owned by address before minting
        price_feed: Source of price rounds
        address: Engine wallet; registered on the ledger if missing
        verbose: Print events and rollbacks

    Raises:
        LengthMismatch, DuplicateAsset
    """

    def __init__(
        self,
        ledger: Ledger,
        collateral_tokens: Sequence[CollateralToken],
        price_feed_ids: Sequence[str],
        dsc: LiabilityToken,
        price_feed: PriceFeed,
        address: str = ENGINE_WALLET,
        verbose: bool = False,
        oracle_timeout: timedelta = ORACLE_TIMEOUT,
    ):
        registry = CollateralRegistry.build(collateral_tokens, price_feed_ids)
        if not ledger.is_registered(address):
            ledger.register_wallet(address)
        super().__init__(
            ledger, registry, AccountBook(), price_feed, dsc,
            address=address, verbose=verbose, oracle_timeout=oracle_timeout,
        )

    def __repr__(self):
        return (
            f"DSCEngine({self.address}, collateral={list(self._registry)}, "
            f"dsc_minted={self._accounts.total_dsc_minted()})"
        )

    # ========================================================================
    # GETTERS
    # ========================================================================

    def collateral_balance(self, user: str, asset: str) -> int:
        return self._accounts.collateral_balance(user, asset)

    def dsc_minted(self, user: str) -> int:
        return self._accounts.dsc_minted(user)

    def registered_assets(self) -> Tuple[str, ...]:
        """Collateral assets in registration order."""
        return self._registry.assets

    def price_feed_id(self, asset: str) -> str:
        return self._registry.price_feed_id(asset)

    def collateral_token(self, asset: str) -> CollateralToken:
        return self._registry.token(asset)

    def users(self):
        return self._accounts.users()

    def total_collateral(self, asset: str) -> int:
        """Sum of every user's deposit of asset."""
        return self._accounts.total_collateral(asset)

    def total_dsc_minted(self) -> int:
        return self._accounts.total_dsc_minted()

    def protocol_collateral_value_usd(self) -> int:
        """USD value of everything deposited, per asset then summed."""
        return sum(self.usd_value(asset, self.total_collateral(asset)) for asset in self._registry)

    @property
    def precision(self) -> int:
        return PRECISION

    @property
    def additional_feed_precision(self) -> int:
        return ADDITIONAL_FEED_PRECISION

    @property
    def liquidation_threshold(self) -> int:
        return LIQUIDATION_THRESHOLD

    @property
    def liquidation_precision(self) -> int:
        return LIQUIDATION_PRECISION

    @property
    def liquidation_bonus(self) -> int:
        return LIQUIDATION_BONUS

    @property
    def min_health_factor(self) -> int:
        return MIN_HEALTH_FACTOR
