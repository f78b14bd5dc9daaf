"""
positions.py - Self-service position operations

PositionManager exposes deposit, redeem, mint and burn (and their two
compositions). Each public operation runs inside _transaction():

    1. enter the non-reentrant critical section (ReentrantCall if occupied)
    2. snapshot the AccountBook, mark the event log and checkpoint the Ledger
    3. run the operation: checks, effects, then interactions
    4. on any exception restore the snapshot, truncate the event log, unwind
       the Ledger to the checkpoint, and re-raise

So a collateral push that is followed by a failed health check is undone
together with the accounting that preceded it, and the caller only ever
observes all of an operation or none of it.
"""

from __future__ import annotations
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Iterator, List

from .accounts import AccountBook, CollateralRegistry
from .core import (
    PriceFeed, LiabilityToken,
    CollateralDeposited, CollateralRedeemed,
    ZeroAmount, TransferFailed, MintFailed, ReentrantCall,
    ORACLE_TIMEOUT,
)
from .ledger import Ledger
from .solvency import SolvencyEngine


def _require_positive(amount: int, what: str) -> None:
    if amount <= 0:
        raise ZeroAmount(f"{what} must be more than zero, got {amount}")


class PositionManager(SolvencyEngine):
    """
    Deposit/redeem collateral and mint/burn DSC, one atomic operation at a time.

    The acting user is passed explicitly to every operation; the engine acts
    on the ledger as self.address.
    """

    def __init__(
        self,
        ledger: Ledger,
        registry: CollateralRegistry,
        accounts: AccountBook,
        price_feed: PriceFeed,
        dsc: LiabilityToken,
        address: str,
        verbose: bool = False,
        oracle_timeout: timedelta = ORACLE_TIMEOUT,
    ):
        super().__init__(
            registry, accounts, price_feed,
            clock=lambda: ledger.current_time,
            oracle_timeout=oracle_timeout,
        )
        self.ledger = ledger
        self.dsc = dsc
        self.address = address
        self.verbose = verbose
        self.events: List[Any] = []
        self._entered = False

    # ========================================================================
    # TRANSACTIONAL WRAPPER
    # ========================================================================

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        if self._entered:
            raise ReentrantCall(f"{operation} called while another engine operation is running")
        self._entered = True
        snapshot = self._accounts.snapshot()
        events_mark = len(self.events)
        checkpoint = self.ledger.checkpoint()
        try:
            yield
        except BaseException as exc:
            self._accounts.restore(snapshot)
            del self.events[events_mark:]
            self.ledger.revert_to(checkpoint)
            if self.verbose:
                print(f"✗ ROLLED BACK {operation}: {type(exc).__name__}: {exc}")
            raise
        finally:
            self._entered = False

    def _emit(self, event: Any) -> None:
        self.events.append(event)
        if self.verbose:
            print(f"• {event}")

    # ========================================================================
    # PUBLIC OPERATIONS
    # ========================================================================

    def deposit_collateral(self, user: str, asset: str, amount: int) -> None:
        """
        Deposit amount of asset from user's wallet as collateral.

        Raises:
            ZeroAmount, UnknownAsset, TransferFailed
        """
        with self._transaction("deposit_collateral"):
            self._deposit_collateral(user, asset, amount)

    def redeem_collateral(self, user: str, asset: str, amount: int) -> None:
        """
        Withdraw amount of asset back to user's wallet.

        Raises:
            ZeroAmount, UnknownAsset, InsufficientCollateral, TransferFailed,
            HealthFactorBroken
        """
        with self._transaction("redeem_collateral"):
            _require_positive(amount, "Collateral amount")
            self._redeem_collateral(asset, amount, user, user)
            self.assert_healthy(user)

    def mint_dsc(self, user: str, amount: int) -> None:
        """
        Issue amount of DSC to user against their collateral.

        Raises:
            ZeroAmount, HealthFactorBroken, MintFailed
        """
        with self._transaction("mint_dsc"):
            self._mint_dsc(user, amount)

    def burn_dsc(self, user: str, amount: int) -> None:
        """
        Repay amount of user's DSC debt with DSC from user's wallet.

        Raises:
            ZeroAmount, InsufficientDebt, TransferFailed
        """
        with self._transaction("burn_dsc"):
            _require_positive(amount, "DSC amount")
            self._burn_dsc(amount, user, user)
            self.assert_healthy(user)

    def deposit_collateral_and_mint_dsc(
        self, user: str, asset: str, amount_collateral: int, amount_dsc: int
    ) -> None:
        """Deposit then mint, as one operation."""
        with self._transaction("deposit_collateral_and_mint_dsc"):
            self._deposit_collateral(user, asset, amount_collateral)
            self._mint_dsc(user, amount_dsc)

    def redeem_collateral_for_dsc(
        self, user: str, asset: str, amount_collateral: int, amount_dsc: int
    ) -> None:
        """Burn then redeem, as one operation."""
        with self._transaction("redeem_collateral_for_dsc"):
            _require_positive(amount_dsc, "DSC amount")
            _require_positive(amount_collateral, "Collateral amount")
            self._burn_dsc(amount_dsc, user, user)
            self._redeem_collateral(asset, amount_collateral, user, user)
            self.assert_healthy(user)

    # ========================================================================
    # STEPS (run inside an open transaction)
    # ========================================================================

    def _deposit_collateral(self, user: str, asset: str, amount: int) -> None:
        _require_positive(amount, "Collateral amount")
        token = self._registry.token(asset)

        self._accounts.credit_collateral(user, asset, amount)
        self._emit(CollateralDeposited(user, asset, amount))

        if not token.transfer_from(self.address, user, self.address, amount):
            raise TransferFailed(f"Pulling {amount} {asset} from {user} failed")

    def _redeem_collateral(self, asset: str, amount: int, source: str, dest: str) -> None:
        """Remove amount of source's asset collateral and push it to dest."""
        token = self._registry.token(asset)

        self._accounts.debit_collateral(source, asset, amount)
        if not token.transfer(self.address, dest, amount):
            raise TransferFailed(f"Sending {amount} {asset} to {dest} failed")
        self._emit(CollateralRedeemed(source, dest, asset, amount))

    def _mint_dsc(self, user: str, amount: int) -> None:
        _require_positive(amount, "DSC amount")

        self._accounts.add_debt(user, amount)
        self.assert_healthy(user)

        if not self.dsc.mint(self.address, user, amount):
            raise MintFailed(f"Minting {amount} DSC to {user} failed")

    def _burn_dsc(self, amount: int, on_behalf_of: str, payer: str) -> None:
        """Reduce on_behalf_of's debt by amount, paid with payer's DSC."""
        self._accounts.reduce_debt(on_behalf_of, amount)

        if not self.dsc.transfer_from(self.address, payer, self.address, amount):
            raise TransferFailed(f"Pulling {amount} DSC from {payer} failed")
        self.dsc.burn(self.address, amount)
