"""
Core types and pure helpers for the DSC engine.

This module provides the foundational data structures shared by the engine
and its in-memory collaborators:
1. Constants: fixed-point scales, liquidation parameters, reserved wallets
2. Protocols: PriceFeed, CollateralToken, LiabilityToken
3. Exceptions: EngineError and the InvalidInput / ExternalCallFailed /
   InvariantViolation taxonomy, plus the collaborator error families
4. Immutable records: PriceRound, AccountInformation, engine events
5. Balance-book types: Move, PendingTransaction, Transaction, Unit
6. Unit factories and fixed-point conversion helpers

All amounts are Python ints. USD values, debt and health factors are
18-decimal fixed point; collateral amounts are raw token units.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN, localcontext
from enum import Enum
from typing import (
    Dict, List, Optional, Any, Protocol, Tuple, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# 18-decimal fixed point used for USD values, debt and health factors.
PRECISION = 10**18

# Price feeds report USD prices with 8 decimals; the extra 10 decimals lift
# them to PRECISION.
FEED_DECIMALS = 8
ADDITIONAL_FEED_PRECISION = 10**10

# Only LIQUIDATION_THRESHOLD / LIQUIDATION_PRECISION (50%) of collateral value
# counts toward solvency, i.e. positions must be 200% overcollateralized.
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_PRECISION = 100

# Liquidators receive 10% of the covered debt in extra collateral.
LIQUIDATION_BONUS = 10

MIN_HEALTH_FACTOR = PRECISION
MAX_HEALTH_FACTOR = 2**256 - 1

# Rounds older than this (relative to the ledger clock) are rejected.
ORACLE_TIMEOUT = timedelta(hours=3)

# Reserved wallet for issuance and burning. Exempt from balance validation.
SYSTEM_WALLET = "system"

# Default wallet id the engine custodies collateral under.
ENGINE_WALLET = "dsc_engine"

# Unit type constants (strings, not enum).
UNIT_TYPE_TOKEN = "TOKEN"
UNIT_TYPE_STABLECOIN = "STABLECOIN"

DEFAULT_TOKEN_DECIMALS = 18

# Decimal precision for human <-> raw conversions; wide enough for any
# 256-bit amount.
FIXED_POINT_CONTEXT_PRECISION = 80


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from wallet ID to quantity held by that wallet for a specific unit.
Positions = Dict[str, int]

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, int]

# Internal state for a unit (owner, allowances, ...).
UnitState = Dict[str, Any]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineError(Exception):
    """Base exception for all engine-related errors."""
    pass


class InvalidInput(EngineError):
    """Raised when a call's arguments can never succeed."""
    pass


class ZeroAmount(InvalidInput):
    """Raised when an amount that must be positive is zero or negative."""
    pass


class UnknownAsset(InvalidInput):
    """Raised when an asset is not in the collateral registry."""

    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"Asset {asset} is not an allowed collateral token")


class LengthMismatch(InvalidInput):
    """Raised when token and price feed lists differ in length."""
    pass


class DuplicateAsset(InvalidInput):
    """Raised when the same asset is registered twice."""
    pass


class InsufficientCollateral(InvalidInput):
    """Raised when redeeming or seizing more collateral than is deposited."""

    def __init__(self, user: str, asset: str, requested: int, available: int):
        self.user = user
        self.asset = asset
        self.requested = requested
        self.available = available
        super().__init__(
            f"{user} has {available} {asset} deposited, cannot remove {requested}"
        )


class InsufficientDebt(InvalidInput):
    """Raised when burning more DSC than the account has minted."""

    def __init__(self, user: str, requested: int, available: int):
        self.user = user
        self.requested = requested
        self.available = available
        super().__init__(
            f"{user} has {available} DSC minted, cannot burn {requested}"
        )


class ExternalCallFailed(EngineError):
    """Raised when a collaborator (oracle, token, stable coin) fails."""
    pass


class OracleUnavailable(ExternalCallFailed):
    """Raised when a price round is non-positive, incomplete or stale."""
    pass


class TransferFailed(ExternalCallFailed):
    """Raised when a token transfer reports failure."""
    pass


class MintFailed(ExternalCallFailed):
    """Raised when the stable coin reports a failed mint."""
    pass


class InvariantViolation(EngineError):
    """Raised when an operation would break a solvency invariant."""
    pass


class HealthFactorBroken(InvariantViolation):
    """Raised when an account ends an operation below MIN_HEALTH_FACTOR."""

    def __init__(self, health_factor: int):
        self.health_factor = health_factor
        super().__init__(f"Health factor {health_factor} is below {MIN_HEALTH_FACTOR}")


class HealthFactorOk(InvariantViolation):
    """Raised when liquidating an account that is not below MIN_HEALTH_FACTOR."""

    def __init__(self, health_factor: int):
        self.health_factor = health_factor
        super().__init__(f"Health factor {health_factor} is not liquidatable")


class HealthFactorNotImproved(InvariantViolation):
    """Raised when a liquidation does not strictly raise the health factor."""

    def __init__(self, starting: int, ending: int):
        self.starting = starting
        self.ending = ending
        super().__init__(f"Health factor did not improve: {starting} -> {ending}")


class ReentrantCall(EngineError):
    """Raised when an engine entry point is entered while another is running."""
    pass


class LedgerError(Exception):
    """Base exception for balance-book errors."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when operating on a unit that has not been registered."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when operating on a wallet that has not been registered."""
    pass


class TokenError(Exception):
    """Base exception for token contract errors."""
    pass


class NotOwner(TokenError):
    """Raised when a caller other than the owner mints or burns."""
    pass


class BurnAmountExceedsBalance(TokenError):
    """Raised when burning more stable coin than the caller holds."""
    pass


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    REJECTED: Transaction failed validation (unknown unit or wallet,
              balance constraint).
    """
    APPLIED = "applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a ledger transaction originated."""
    USER_ACTION = "user_action"
    CONTRACT = "contract"
    SYSTEM = "system"


# ============================================================================
# PRICE AND ACCOUNT RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PriceRound:
    """
    One answer from a price feed.

    Attributes:
        round_id: Monotonic id of the round that produced the answer.
        answer: Price in USD scaled by 10**decimals.
        decimals: Decimal precision of answer.
        started_at: When the round started.
        updated_at: When the answer was last written.
        answered_in_round: Round in which the answer was computed.
    """
    round_id: int
    answer: int
    decimals: int
    started_at: datetime
    updated_at: datetime
    answered_in_round: int


@dataclass(frozen=True, slots=True)
class AccountInformation:
    """Derived position of one user: outstanding debt and USD collateral value."""
    total_dsc_minted: int
    collateral_value_usd: int


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    """Emitted when a user deposits collateral."""
    user: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    """
    Emitted when collateral leaves the engine.

    redeemed_to differs from redeemed_from when a liquidator seizes it.
    """
    redeemed_from: str
    redeemed_to: str
    asset: str
    amount: int


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class PriceFeed(Protocol):
    """Source of USD prices, keyed by price feed id."""

    def latest_round_data(self, feed_id: str) -> PriceRound:
        """Return the most recent round for a feed."""
        ...


@runtime_checkable
class CollateralToken(Protocol):
    """
    Transfer interface of a collateral asset.

    transfer/transfer_from report failure by returning False rather than
    raising, so the engine decides how to surface it.
    """
    symbol: str
    decimals: int

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        ...

    def transfer_from(self, spender: str, source: str, dest: str, amount: int) -> bool:
        ...


@runtime_checkable
class LiabilityToken(CollateralToken, Protocol):
    """Mintable/burnable stable coin; only its owner may mint or burn."""

    def mint(self, caller: str, to: str, amount: int) -> bool:
        ...

    def burn(self, caller: str, amount: int) -> None:
        ...


# ============================================================================
# BALANCE-BOOK DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a ledger transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Identifier of the acting wallet or component
        unit_symbol: Symbol of the token contract that built the transaction
        event_type: Specific event within the source (e.g. "TRANSFER", "MINT")
    """
    origin_type: OriginType
    source_id: str
    unit_symbol: Optional[str] = None
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.unit_symbol:
            parts.append(f"unit={self.unit_symbol}")
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Record of a unit state change, with full before/after snapshots so the
    ledger can unwind it.
    """
    unit: str
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """Fields that differ between old and new state, as (old, new) tuples."""
        old = self.old_state if isinstance(self.old_state, dict) else {}
        new = self.new_state if isinstance(self.new_state, dict) else {}
        changes = {}
        for key in set(old.keys()) | set(new.keys()):
            if old.get(key) != new.get(key):
                changes[key] = (old.get(key), new.get(key))
        return changes


@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: Amount to transfer in raw token units (positive int).
        unit_symbol: Symbol of the unit being transferred (e.g. "WETH", "DSC").
        source: Wallet ID debited.
        dest: Wallet ID credited.
        contract_id: Identifier of the operation generating this move.
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction before execution - represents INTENT.

    Built by token contracts and submitted to Ledger.execute().

    Attributes:
        moves: Value transfers between wallets
        state_changes: Unit state changes (with old_state and new_state)
        origin: Who/what created this transaction and why
        timestamp: Ledger time at which the intent was built
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime

    def is_empty(self) -> bool:
        """Return True if there are no moves and no state changes."""
        return not self.moves and not self.state_changes

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {len(self.state_changes)} deltas, {self.origin})"


def build_transaction(
    view: Any,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction stamped with the view's current time.

    Args:
        view: Anything exposing current_time (normally the Ledger)
        moves: Moves to include
        state_changes: Optional unit state changes applied with the moves
        origin: Transaction origin (defaults to a CONTRACT origin)

    Example:
        tx = build_transaction(ledger, [
            Move(10**18, "WETH", "alice", "dsc_engine", "deposit")
        ])
        ledger.execute(tx)
    """
    import copy

    if origin is None:
        origin = TransactionOrigin(OriginType.CONTRACT, "contract")

    copied_changes: Tuple[UnitStateChange, ...] = ()
    if state_changes:
        copied_changes = tuple(
            UnitStateChange(
                unit=sc.unit,
                old_state=copy.deepcopy(sc.old_state),
                new_state=copy.deepcopy(sc.new_state),
            )
            for sc in state_changes
        )

    return PendingTransaction(
        moves=tuple(moves),
        state_changes=copied_changes,
        origin=origin,
        timestamp=view.current_time,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Attributes:
        moves: Value transfers between wallets
        state_changes: Unit state changes (with old_state and new_state)
        origin: Who/what created this transaction and why
        timestamp: When the PendingTransaction was created
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that executed this
        execution_time: When this was executed and logged
        sequence_number: Monotonic sequence within the ledger
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int

    def __post_init__(self):
        if not self.moves and not self.state_changes:
            raise ValueError("Transaction must have moves or state_changes")

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   timestamp      : ' + str(self.timestamp))}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"│{pad('   origin         : ' + str(self.origin))}│",
            f"├{bar}┤",
            f"│{pad(' Moves (' + str(len(self.moves)) + '):')}│",
        ]
        for i, move in enumerate(self.moves):
            lines.append(f"│{pad(f'   [{i}] {move.quantity} {move.unit_symbol}: {move.source} → {move.dest}')}│")
        if self.state_changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' State Changes (' + str(len(self.state_changes)) + '):')}│")
            for sc in self.state_changes:
                lines.append(f"│{pad('   [' + sc.unit + ']')}│")
                for field_name, (old_val, new_val) in sc.changed_fields().items():
                    lines.append(f"│{pad(f'      {field_name}: {old_val!r} → {new_val!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """Convert a state dict to a sorted tuple of (key, value) pairs."""
    if not state:
        return ()
    return tuple(sorted(state.items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    """Convert a frozen state back to a dict."""
    return dict(frozen_state)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a token held on the ledger.

    Attributes:
        symbol: Short identifier (e.g. "WETH", "DSC").
        name: Human-readable name.
        unit_type: TOKEN or STABLECOIN.
        decimals: Number of decimals of the raw integer amounts.
        min_balance: Minimum allowed balance in any non-system wallet.
        _frozen_state: Internal frozen state (owner, allowances).
    """
    symbol: str
    name: str
    unit_type: str
    decimals: int = DEFAULT_TOKEN_DECIMALS
    min_balance: int = 0
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """The unit's state as a new dict."""
        return _thaw_state(self._frozen_state)


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def token_unit(symbol: str, name: str, decimals: int = DEFAULT_TOKEN_DECIMALS) -> Unit:
    """
    Create a plain transferable token unit (collateral asset).

    Args:
        symbol: Token symbol (e.g. "WETH").
        name: Full name (e.g. "Wrapped Ether").
        decimals: Decimals of raw amounts (default: 18).
    """
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_TOKEN,
        decimals=decimals,
        _frozen_state=_freeze_state({'allowances': {}}),
    )


def stablecoin_unit(symbol: str, name: str, owner: str) -> Unit:
    """
    Create the stable coin unit. Always 18 decimals; owner gates mint/burn.
    """
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_STABLECOIN,
        decimals=DEFAULT_TOKEN_DECIMALS,
        _frozen_state=_freeze_state({'allowances': {}, 'owner': owner}),
    )


# ============================================================================
# FIXED-POINT HELPERS
# ============================================================================

def to_fixed(value: Any, decimals: int = DEFAULT_TOKEN_DECIMALS) -> int:
    """
    Convert a human amount to raw integer units, truncating extra digits.

    to_fixed("1.5") == 1_500_000_000_000_000_000
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    with localcontext() as ctx:
        ctx.prec = FIXED_POINT_CONTEXT_PRECISION
        scaled = (value * (Decimal(10) ** decimals)).quantize(Decimal("1"), rounding=ROUND_DOWN)
    return int(scaled)


def from_fixed(amount: int, decimals: int = DEFAULT_TOKEN_DECIMALS) -> Decimal:
    """Convert raw integer units to a Decimal human amount."""
    with localcontext() as ctx:
        ctx.prec = FIXED_POINT_CONTEXT_PRECISION
        return Decimal(amount) / (Decimal(10) ** decimals)
