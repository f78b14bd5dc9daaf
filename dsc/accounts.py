"""
accounts.py - Collateral registry and per-user account book

CollateralRegistry is fixed at construction: the ordered set of accepted
collateral assets, each with its price feed id and token collaborator.

AccountBook is the engine's only mutable state:
    deposits: (user, asset) -> deposited amount (raw token units)
    debt:     user -> DSC minted (18 decimals)

Neither map ever holds a negative value; decrements past zero raise before
anything changes. Accounts appear on first credit and are never deleted.
"""

from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

from .core import (
    CollateralToken,
    UnknownAsset, LengthMismatch, DuplicateAsset,
    InsufficientCollateral, InsufficientDebt,
)


@dataclass(frozen=True, slots=True)
class CollateralRegistry:
    """
    Immutable asset -> price feed registry with deterministic ordering.

    Build it with CollateralRegistry.build(); iteration follows registration
    order, which fixes the summation order of collateral valuation.
    """
    assets: Tuple[str, ...]
    price_feeds: Mapping[str, str]
    tokens: Mapping[str, CollateralToken]

    @classmethod
    def build(
        cls,
        tokens: Sequence[CollateralToken],
        price_feed_ids: Sequence[str],
    ) -> CollateralRegistry:
        """
        Raises:
            LengthMismatch: If tokens and price_feed_ids differ in length
            DuplicateAsset: If two tokens share a symbol
        """
        if len(tokens) != len(price_feed_ids):
            raise LengthMismatch(
                f"{len(tokens)} collateral tokens but {len(price_feed_ids)} price feeds"
            )
        feeds: Dict[str, str] = {}
        by_symbol: Dict[str, CollateralToken] = {}
        for token, feed_id in zip(tokens, price_feed_ids):
            if token.symbol in feeds:
                raise DuplicateAsset(f"Collateral {token.symbol} registered twice")
            feeds[token.symbol] = feed_id
            by_symbol[token.symbol] = token
        return cls(
            assets=tuple(feeds),
            price_feeds=MappingProxyType(feeds),
            tokens=MappingProxyType(by_symbol),
        )

    def __contains__(self, asset: object) -> bool:
        return asset in self.price_feeds

    def __iter__(self) -> Iterator[str]:
        return iter(self.assets)

    def __len__(self) -> int:
        return len(self.assets)

    def token(self, asset: str) -> CollateralToken:
        """Token collaborator for asset; UnknownAsset if not registered."""
        if asset not in self.tokens:
            raise UnknownAsset(asset)
        return self.tokens[asset]

    def price_feed_id(self, asset: str) -> str:
        if asset not in self.price_feeds:
            raise UnknownAsset(asset)
        return self.price_feeds[asset]


# Opaque copy of an AccountBook's maps, produced by snapshot().
AccountSnapshot = Tuple[Tuple[Tuple[str, Tuple[Tuple[str, int], ...]], ...], Tuple[Tuple[str, int], ...]]


class AccountBook:
    """Deposited collateral and minted debt per user."""

    def __init__(self):
        self._deposits: Dict[str, Dict[str, int]] = {}
        self._debt: Dict[str, int] = {}

    # ========================================================================
    # READS
    # ========================================================================

    def collateral_balance(self, user: str, asset: str) -> int:
        return self._deposits.get(user, {}).get(asset, 0)

    def dsc_minted(self, user: str) -> int:
        return self._debt.get(user, 0)

    def users(self) -> List[str]:
        """Every user that ever held collateral or debt, sorted."""
        return sorted(set(self._deposits) | set(self._debt))

    def total_collateral(self, asset: str) -> int:
        return sum(deposits.get(asset, 0) for deposits in self._deposits.values())

    def total_dsc_minted(self) -> int:
        return sum(self._debt.values())

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def credit_collateral(self, user: str, asset: str, amount: int) -> None:
        deposits = self._deposits.setdefault(user, {})
        deposits[asset] = deposits.get(asset, 0) + amount

    def debit_collateral(self, user: str, asset: str, amount: int) -> None:
        """
        Raises:
            InsufficientCollateral: If user has less than amount of asset deposited
        """
        available = self.collateral_balance(user, asset)
        if amount > available:
            raise InsufficientCollateral(user, asset, amount, available)
        self._deposits[user][asset] = available - amount

    def add_debt(self, user: str, amount: int) -> None:
        self._debt[user] = self._debt.get(user, 0) + amount

    def reduce_debt(self, user: str, amount: int) -> None:
        """
        Raises:
            InsufficientDebt: If user has minted less than amount
        """
        available = self.dsc_minted(user)
        if amount > available:
            raise InsufficientDebt(user, amount, available)
        self._debt[user] = available - amount

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def snapshot(self) -> AccountSnapshot:
        """Immutable copy of both maps, for restore()."""
        deposits = tuple(
            (user, tuple(assets.items())) for user, assets in self._deposits.items()
        )
        return deposits, tuple(self._debt.items())

    def restore(self, snapshot: AccountSnapshot) -> None:
        """Replace both maps with the contents of a snapshot."""
        deposits, debt = snapshot
        self._deposits = {user: dict(assets) for user, assets in deposits}
        self._debt = dict(debt)
