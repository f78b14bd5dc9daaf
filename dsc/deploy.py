"""
deploy.py - Local deployment wiring

NetworkConfig holds everything a local deployment needs: collateral token
metadata, price feed ids, initial answers and the ledger start time.
deploy_local() builds a ready-to-use system from it:

    ledger -> WETH, WBTC (faucet tokens) -> StaticPriceFeed -> StableCoin
           -> DSCEngine -> stable coin ownership handed to the engine

Example:
    d = deploy_local()
    d.fund("alice")
    d.weth.approve("alice", d.engine.address, 10 * 10**18)
    d.engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10 * 10**18, 5_000 * 10**18)
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from .core import ENGINE_WALLET, FEED_DECIMALS, DEFAULT_TOKEN_DECIMALS, to_fixed
from .engine import DSCEngine
from .ledger import Ledger
from .price_feed import StaticPriceFeed
from .tokens import MintableToken, StableCoin


DEPLOYER_WALLET = "deployer"


@dataclass(frozen=True, slots=True)
class CollateralConfig:
    """One accepted collateral asset and the feed that prices it."""
    symbol: str
    name: str
    price_feed_id: str
    initial_answer: int
    decimals: int = DEFAULT_TOKEN_DECIMALS

    def __post_init__(self):
        if self.initial_answer <= 0:
            raise ValueError(f"initial_answer must be positive, got {self.initial_answer}")
        if self.decimals < 0:
            raise ValueError(f"decimals cannot be negative, got {self.decimals}")


@dataclass(frozen=True, slots=True)
class NetworkConfig:
    """Parameters of a local deployment."""
    collateral: Tuple[CollateralConfig, ...] = (
        CollateralConfig("WETH", "Wrapped Ether", "ETH_USD", to_fixed(2000, FEED_DECIMALS)),
        CollateralConfig("WBTC", "Wrapped Bitcoin", "BTC_USD", to_fixed(1000, FEED_DECIMALS)),
    )
    feed_decimals: int = FEED_DECIMALS
    start_time: datetime = datetime(2024, 1, 1)
    starting_balance: int = to_fixed(10)
    ledger_name: str = "local"
    engine_address: str = ENGINE_WALLET
    deployer: str = DEPLOYER_WALLET

    def __post_init__(self):
        if not self.collateral:
            raise ValueError("At least one collateral asset is required")
        symbols = [c.symbol for c in self.collateral]
        if len(set(symbols)) != len(symbols):
            raise ValueError(f"Duplicated collateral in {symbols}")
        if self.starting_balance < 0:
            raise ValueError(f"starting_balance cannot be negative, got {self.starting_balance}")


@dataclass(slots=True)
class Deployment:
    """Everything deploy_local() built."""
    config: NetworkConfig
    ledger: Ledger
    tokens: Dict[str, MintableToken]
    price_feed: StaticPriceFeed
    dsc: StableCoin
    engine: DSCEngine

    @property
    def weth(self) -> MintableToken:
        return self.tokens["WETH"]

    @property
    def wbtc(self) -> MintableToken:
        return self.tokens["WBTC"]

    def fund(self, user: str, amount: Optional[int] = None) -> None:
        """Register user if needed and mint amount (default: starting_balance) of every collateral."""
        if not self.ledger.is_registered(user):
            self.ledger.register_wallet(user)
        amount = self.config.starting_balance if amount is None else amount
        if amount == 0:
            return
        for token in self.tokens.values():
            token.mint(user, amount)

    def set_price(self, asset: str, answer: int) -> None:
        """Publish a new answer for asset's feed, stamped at the ledger's current time."""
        self.price_feed.update_answer(self.engine.price_feed_id(asset), answer)


def deploy_local(config: Optional[NetworkConfig] = None, verbose: bool = False) -> Deployment:
    """
    Build a complete local system.

    Args:
        config: Deployment parameters (default: NetworkConfig())
        verbose: Passed to the ledger and the engine
    """
    config = config or NetworkConfig()

    ledger = Ledger(config.ledger_name, initial_time=config.start_time, verbose=verbose)
    ledger.register_wallet(config.deployer)

    tokens: Dict[str, MintableToken] = {
        c.symbol: MintableToken(ledger, c.symbol, c.name, c.decimals) for c in config.collateral
    }
    price_feed = StaticPriceFeed(
        {c.price_feed_id: c.initial_answer for c in config.collateral},
        clock=lambda: ledger.current_time,
        decimals=config.feed_decimals,
    )
    dsc = StableCoin(ledger, owner=config.deployer)

    engine = DSCEngine(
        ledger,
        list(tokens.values()),
        [c.price_feed_id for c in config.collateral],
        dsc,
        price_feed,
        address=config.engine_address,
        verbose=verbose,
    )
    dsc.transfer_ownership(config.deployer, engine.address)

    if verbose:
        print(f"Deployed {engine!r} on ledger {ledger.name}")

    return Deployment(
        config=config,
        ledger=ledger,
        tokens=tokens,
        price_feed=price_feed,
        dsc=dsc,
        engine=engine,
    )
