"""
ledger.py - Stateful Token Balance Book

The Ledger class holds every token balance the engine interacts with: the
collateral assets and the stable coin are units, users and the engine are
wallets. Token contracts (tokens.py) are thin facades that build
PendingTransactions and submit them here.

Key responsibilities:
    - Executes transactions atomically (all moves succeed or all fail)
    - Maintains wallet balances and unit definitions (with their state)
    - Tracks logical time (the clock oracle staleness is measured against)
    - Logs every applied transaction and can unwind the log back to a
      checkpoint, which is how the engine rolls back external effects
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Set, Optional, Tuple, Any
import copy

from .core import (
    # Types
    Move, Transaction, Unit,
    PendingTransaction,
    ExecuteResult,
    Positions, UnitState, BalanceMap,
    # Constants
    SYSTEM_WALLET,
    # Exceptions
    LedgerError, UnitNotRegistered, WalletNotRegistered,
    # Helper functions
    _freeze_state,
)


class Ledger:
    """
    Token balance book with atomic execution and an unwindable audit trail.

    Design Principles:
        - Always validates: every transaction is checked against registration
          and balance constraints before any balance changes.
        - Always logs: every applied transaction is appended to the log, which
          is what checkpoint()/revert_to() walk back over.

    Thread Safety:
        Not thread-safe. Callers serialize access (the engine holds a
        non-reentrant critical section around every operation).

    Example:
        ledger = Ledger("local")
        ledger.register_unit(token_unit("WETH", "Wrapped Ether"))
        ledger.register_wallet("alice")

        tx = build_transaction(ledger, [
            Move(10**18, "WETH", SYSTEM_WALLET, "alice", "faucet")
        ])
        result = ledger.execute(tx)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Print registrations and transaction results (default: True)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, int]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._next_sequence: int = 0
        # Inverted index unit -> {wallet -> quantity} for position lookups
        self._positions_by_unit: Dict[str, Dict[str, int]] = defaultdict(dict)

        # The system wallet issues and absorbs supply
        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    # ========================================================================
    # READ-ONLY VIEW
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Get the balance of a unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, 0)

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """
        Get a deep copy of a unit's state; safe to mutate.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return copy.deepcopy(self.units[unit_symbol].state)

    def get_positions(self, unit_symbol: str) -> Positions:
        """All non-zero holder positions for a unit. The issuing system wallet is not a holder."""
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        """List all registered unit symbols."""
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    def total_supply(self, unit_symbol: str) -> int:
        """
        Circulating supply of a unit: the sum of all non-system balances.

        Issuance moves supply out of SYSTEM_WALLET and burning moves it back,
        so this equals minus the system wallet's balance.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            self.balances[w].get(unit_symbol, 0)
            for w in sorted(self.registered_wallets)
            if w != SYSTEM_WALLET
        )

    def verify_double_entry(self) -> Dict[str, Any]:
        """
        Verify that every unit nets to zero across all wallets, system included.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all units net to zero
            - 'supplies': Dict[str, int] - circulating supply per unit
            - 'discrepancies': List[Dict] - units whose balances do not net out
        """
        supplies = {}
        discrepancies = []
        for unit_symbol in sorted(self.units):
            supply = self.total_supply(unit_symbol)
            supplies[unit_symbol] = supply
            net = supply + self.balances[SYSTEM_WALLET].get(unit_symbol, 0)
            if net != 0:
                discrepancies.append({'unit': unit_symbol, 'net': net})
        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock. Time can only move forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(int)
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit (token).

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            print(f"Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}, {unit.decimals} decimals]")

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """exec:{ledger_name}:{sequence:012d}:{timestamp_micros}"""
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All moves and state changes apply together or not at all. Nothing is
        mutated until validation of the whole transaction has passed.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.REJECTED if validation failed
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        valid, reason = self._validate_pending(pending)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1

        tx = Transaction(
            moves=pending.moves,
            state_changes=pending.state_changes,
            origin=pending.origin,
            timestamp=pending.timestamp,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
        )

        self._execute_moves(tx.moves)
        for sc in tx.state_changes:
            self._set_unit_state(sc.unit, sc.new_state)

        self.transaction_log.append(tx)

        if self.verbose:
            print(repr(tx))
            print("✓ APPLIED")
        return ExecuteResult.APPLIED

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate a pending transaction against all constraints.

        Checks performed:
        1. Timestamp (transaction must not be from the future)
        2. Unit and wallet registration
        3. State changes target registered units
        4. Balance constraints (no non-system wallet below the unit minimum)

        Returns:
            (True, "") on success, (False, reason) otherwise
        """
        if pending.timestamp > self._current_time:
            return False, "future timestamp"

        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return False, f"unit not registered: {move.unit_symbol}"
            if not self.is_registered(move.source):
                return False, f"wallet not registered: {move.source}"
            if not self.is_registered(move.dest):
                return False, f"wallet not registered: {move.dest}"

        for sc in pending.state_changes:
            if sc.unit not in self.units:
                return False, f"unit not registered: {sc.unit}"

        net: Dict[Tuple[str, str], int] = {}
        for move in pending.moves:
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = net.get(key_src, 0) - move.quantity
            net[key_dst] = net.get(key_dst, 0) + move.quantity

        # SYSTEM_WALLET is exempt - it can hold any balance
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            proposed = self.balances[wallet][unit_sym] + delta
            minimum = self.units[unit_sym].min_balance
            if proposed < minimum:
                return False, f"{wallet} {unit_sym}: {proposed} < min {minimum}"

        return True, ""

    def _update_position_index(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """Keep the unit -> {wallet -> quantity} index in sync; zero balances are dropped."""
        if wallet_id == SYSTEM_WALLET:
            return
        if quantity != 0:
            self._positions_by_unit[unit_symbol][wallet_id] = quantity
        else:
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)

    def _execute_moves(self, moves) -> None:
        """Apply moves to wallet balances and the position index."""
        for move in moves:
            new_src_balance = self.balances[move.source][move.unit_symbol] - move.quantity
            self.balances[move.source][move.unit_symbol] = new_src_balance
            self._update_position_index(move.source, move.unit_symbol, new_src_balance)

            new_dst_balance = self.balances[move.dest][move.unit_symbol] + move.quantity
            self.balances[move.dest][move.unit_symbol] = new_dst_balance
            self._update_position_index(move.dest, move.unit_symbol, new_dst_balance)

    def _set_unit_state(self, unit_symbol: str, state: Any) -> None:
        """Replace a unit's state. Unit is frozen, so a new Unit is stored."""
        new_state = copy.deepcopy(state if isinstance(state, dict) else {})
        self.units[unit_symbol] = replace(self.units[unit_symbol], _frozen_state=_freeze_state(new_state))

    # ========================================================================
    # CHECKPOINTS
    # ========================================================================

    def checkpoint(self) -> int:
        """
        Mark the current position in the transaction log.

        Pass the returned value to revert_to() to undo every transaction
        applied after this call.
        """
        return self._next_sequence

    def revert_to(self, checkpoint: int) -> None:
        """
        Unwind, in place, every transaction applied since checkpoint.

        Walks the log backwards reversing each transaction's moves and
        restoring the old_state of its state changes, then truncates the log.

        Raises:
            LedgerError: If checkpoint is ahead of the log
        """
        if checkpoint > self._next_sequence:
            raise LedgerError(
                f"Cannot revert to {checkpoint}: ledger is at sequence {self._next_sequence}"
            )

        while self.transaction_log and self.transaction_log[-1].sequence_number >= checkpoint:
            tx = self.transaction_log.pop()

            for move in reversed(tx.moves):
                new_src = self.balances[move.source][move.unit_symbol] + move.quantity
                new_dst = self.balances[move.dest][move.unit_symbol] - move.quantity
                self.balances[move.source][move.unit_symbol] = new_src
                self.balances[move.dest][move.unit_symbol] = new_dst
                self._update_position_index(move.source, move.unit_symbol, new_src)
                self._update_position_index(move.dest, move.unit_symbol, new_dst)

            for sc in reversed(tx.state_changes):
                self._set_unit_state(sc.unit, sc.old_state)

        self._next_sequence = checkpoint

    def clone(self) -> Ledger:
        """
        Create a fully independent deep copy of this ledger.

        Useful for what-if simulation: operations on the clone never touch
        the original.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned.units = dict(self.units)
        cloned.registered_wallets = self.registered_wallets.copy()
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_sequence = self._next_sequence

        cloned.balances = {}
        for wallet, bals in self.balances.items():
            cloned.balances[wallet] = defaultdict(int, bals)

        cloned._positions_by_unit = defaultdict(dict)
        for unit_symbol, positions in self._positions_by_unit.items():
            cloned._positions_by_unit[unit_symbol] = dict(positions)

        return cloned
