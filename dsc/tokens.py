"""
tokens.py - Token contracts living on the Ledger

Token is the transfer interface the engine consumes for collateral assets:
balances are ledger balances, allowances live in the unit's state and are
updated in the same ledger transaction as the move they authorize.

MintableToken adds an unrestricted mint for local deployments and tests.
StableCoin is the dollar-pegged liability: only its owner (the engine) may
mint or burn.

Soft failures (unknown wallet, insufficient balance or allowance) are
reported as False from transfer/transfer_from/mint, never raised, so the
caller decides how to surface them.

Every ledger transaction is tagged with its origin: USER_ACTION for a
holder's own approve/transfer, CONTRACT for calls made by a spender or the
owner contract, SYSTEM for faucet issuance.
"""

from __future__ import annotations
from typing import Dict, List

from .core import (
    Move, UnitStateChange, TransactionOrigin, OriginType, ExecuteResult,
    SYSTEM_WALLET, DEFAULT_TOKEN_DECIMALS,
    ZeroAmount, NotOwner, BurnAmountExceedsBalance,
    build_transaction, token_unit, stablecoin_unit,
)
from .ledger import Ledger


class Token:
    """
    ERC20-style token over a Ledger unit.

    Example:
        weth = Token(ledger, "WETH", "Wrapped Ether")
        weth.approve("alice", "dsc_engine", 10**18)
        weth.transfer_from("dsc_engine", "alice", "dsc_engine", 10**18)
    """

    def __init__(
        self,
        ledger: Ledger,
        symbol: str,
        name: str,
        decimals: int = DEFAULT_TOKEN_DECIMALS,
        _register: bool = True,
    ):
        self.ledger = ledger
        self.symbol = symbol
        self.name = name
        self.decimals = decimals
        if _register:
            ledger.register_unit(token_unit(symbol, name, decimals))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol}, decimals={self.decimals})"

    # ========================================================================
    # VIEWS
    # ========================================================================

    def balance_of(self, who: str) -> int:
        """Balance of a wallet; 0 for wallets the ledger has never seen."""
        if not self.ledger.is_registered(who):
            return 0
        return self.ledger.get_balance(who, self.symbol)

    def total_supply(self) -> int:
        return self.ledger.total_supply(self.symbol)

    def allowance(self, owner: str, spender: str) -> int:
        allowances = self.ledger.get_unit_state(self.symbol).get('allowances', {})
        return allowances.get(owner, {}).get(spender, 0)

    # ========================================================================
    # TRANSFERS
    # ========================================================================

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Set spender's allowance over owner's balance to amount."""
        if amount < 0:
            raise ValueError(f"Allowance cannot be negative, got {amount}")
        old_state = self.ledger.get_unit_state(self.symbol)
        new_state = self._with_allowance(old_state, owner, spender, amount)
        change = UnitStateChange(unit=self.symbol, old_state=old_state, new_state=new_state)
        return self._submit([], [change], owner, "APPROVE", OriginType.USER_ACTION)

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """Move amount from sender to to. Returns False if the ledger rejects it."""
        if amount < 0:
            return False
        if amount == 0:
            return True
        move = Move(amount, self.symbol, sender, to, f"{self.symbol}_transfer")
        return self._submit([move], [], sender, "TRANSFER", OriginType.USER_ACTION)

    def transfer_from(self, spender: str, source: str, dest: str, amount: int) -> bool:
        """
        Move amount from source to dest on behalf of spender.

        Spends spender's allowance unless spender is the source itself.
        Returns False on insufficient allowance or a ledger rejection.
        """
        if amount < 0:
            return False
        if amount == 0:
            return True

        changes: List[UnitStateChange] = []
        if spender != source:
            old_state = self.ledger.get_unit_state(self.symbol)
            current = old_state.get('allowances', {}).get(source, {}).get(spender, 0)
            if current < amount:
                if self.ledger.verbose:
                    print(f"✗ REJECTED: {spender} allowance {current} < {amount} {self.symbol} from {source}")
                return False
            new_state = self._with_allowance(old_state, source, spender, current - amount)
            changes.append(UnitStateChange(unit=self.symbol, old_state=old_state, new_state=new_state))

        move = Move(amount, self.symbol, source, dest, f"{self.symbol}_transfer_from")
        return self._submit([move], changes, spender, "TRANSFER_FROM")

    # ========================================================================
    # INTERNALS
    # ========================================================================

    @staticmethod
    def _with_allowance(state: Dict, owner: str, spender: str, amount: int) -> Dict:
        allowances = {k: dict(v) for k, v in state.get('allowances', {}).items()}
        allowances.setdefault(owner, {})[spender] = amount
        return {**state, 'allowances': allowances}

    def _submit(
        self,
        moves: List[Move],
        state_changes: List[UnitStateChange],
        actor: str,
        event_type: str,
        origin_type: OriginType = OriginType.CONTRACT,
    ) -> bool:
        origin = TransactionOrigin(origin_type, actor, self.symbol, event_type)
        tx = build_transaction(self.ledger, moves, state_changes, origin=origin)
        return self.ledger.execute(tx) == ExecuteResult.APPLIED

    def _issue(self, to: str, amount: int, event_type: str, origin_type: OriginType = OriginType.SYSTEM) -> bool:
        move = Move(amount, self.symbol, SYSTEM_WALLET, to, f"{self.symbol}_{event_type.lower()}")
        return self._submit([move], [], SYSTEM_WALLET, event_type, origin_type)


class MintableToken(Token):
    """Collateral token with an open faucet, for local deployments and tests."""

    def mint(self, to: str, amount: int) -> bool:
        if amount <= 0:
            raise ZeroAmount(f"Mint amount must be positive, got {amount}")
        return self._issue(to, amount, "MINT")


class StableCoin(Token):
    """
    The dollar-pegged liability token. Always 18 decimals.

    Minting and burning are capabilities of the owner wallet; any other
    caller gets NotOwner. Burning destroys tokens the owner itself holds, so
    the engine first pulls the DSC being repaid and then burns it.
    """

    def __init__(
        self,
        ledger: Ledger,
        owner: str,
        symbol: str = "DSC",
        name: str = "Decentralized Stable Coin",
    ):
        super().__init__(ledger, symbol, name, DEFAULT_TOKEN_DECIMALS, _register=False)
        ledger.register_unit(stablecoin_unit(symbol, name, owner))

    @property
    def owner(self) -> str:
        return self.ledger.get_unit_state(self.symbol)['owner']

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise NotOwner(f"{caller} is not the owner of {self.symbol}")

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._require_owner(caller)
        old_state = self.ledger.get_unit_state(self.symbol)
        change = UnitStateChange(
            unit=self.symbol, old_state=old_state, new_state={**old_state, 'owner': new_owner}
        )
        self._submit([], [change], caller, "OWNERSHIP_TRANSFERRED")

    def mint(self, caller: str, to: str, amount: int) -> bool:
        """
        Issue amount of the stable coin to to.

        Raises:
            NotOwner: If caller is not the owner
            ZeroAmount: If amount is not positive

        Returns:
            False if the ledger rejects the issuance (e.g. unknown wallet)
        """
        self._require_owner(caller)
        if amount <= 0:
            raise ZeroAmount(f"Mint amount must be positive, got {amount}")
        return self._issue(to, amount, "MINT", OriginType.CONTRACT)

    def burn(self, caller: str, amount: int) -> None:
        """
        Destroy amount of the stable coin held by caller.

        Raises:
            NotOwner: If caller is not the owner
            ZeroAmount: If amount is not positive
            BurnAmountExceedsBalance: If caller holds less than amount
        """
        self._require_owner(caller)
        if amount <= 0:
            raise ZeroAmount(f"Burn amount must be positive, got {amount}")
        balance = self.balance_of(caller)
        if balance < amount:
            raise BurnAmountExceedsBalance(f"{caller} holds {balance} {self.symbol}, cannot burn {amount}")
        move = Move(amount, self.symbol, caller, SYSTEM_WALLET, f"{self.symbol}_burn")
        if not self._submit([move], [], caller, "BURN"):
            raise BurnAmountExceedsBalance(f"Ledger rejected burning {amount} {self.symbol} from {caller}")
