"""
helpers.py - Builders and assertions shared by the DSC engine tests

- units()/answer(): human amounts to raw token units and feed answers
- build_system(): a deployment with injectable token classes
- deposit()/open_position(): common setup steps in one call
- engine_state(): a comparable snapshot of everything an operation touches
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Optional

from dsc import (
    Ledger, MintableToken, StableCoin, StaticPriceFeed, DSCEngine,
    NetworkConfig, CollateralConfig, Deployment,
)

T0 = datetime(2024, 1, 1)
ONE = 10**18


def units(n) -> int:
    """n whole tokens (or dollars) as 18-decimal raw units."""
    return int(Decimal(str(n)) * ONE)


def answer(dollars) -> int:
    """A USD price as an 8-decimal feed answer."""
    return int(Decimal(str(dollars)) * 10**8)


def build_system(
    prices: Optional[Dict[str, int]] = None,
    token_factory: Callable[..., MintableToken] = MintableToken,
    dsc_factory: Callable[..., StableCoin] = StableCoin,
    token_decimals: int = 18,
) -> Deployment:
    """
    Build a deployment with injectable token classes.

    prices maps asset symbol -> feed answer; feed ids are "<SYMBOL>_USD".
    """
    prices = prices or {"WETH": answer(10)}
    config = NetworkConfig(
        collateral=tuple(
            CollateralConfig(symbol, symbol, f"{symbol}_USD", price, token_decimals)
            for symbol, price in prices.items()
        ),
        start_time=T0,
    )

    ledger = Ledger("test", initial_time=T0, verbose=False)
    ledger.register_wallet(config.deployer)
    tokens = {
        c.symbol: token_factory(ledger, c.symbol, c.name, c.decimals) for c in config.collateral
    }
    feed = StaticPriceFeed(
        {c.price_feed_id: c.initial_answer for c in config.collateral},
        clock=lambda: ledger.current_time,
    )
    dsc = dsc_factory(ledger, owner=config.deployer)
    engine = DSCEngine(
        ledger, list(tokens.values()), [c.price_feed_id for c in config.collateral], dsc, feed
    )
    dsc.transfer_ownership(config.deployer, engine.address)
    return Deployment(config, ledger, tokens, feed, dsc, engine)


def deposit(d: Deployment, user: str, asset: str, amount: int) -> None:
    """Approve the engine and deposit amount of asset for user."""
    d.tokens[asset].approve(user, d.engine.address, amount)
    d.engine.deposit_collateral(user, asset, amount)


def open_position(d: Deployment, user: str, asset: str, collateral: int, debt: int) -> None:
    """Fund user with exactly collateral, deposit it all and mint debt."""
    if not d.ledger.is_registered(user):
        d.ledger.register_wallet(user)
    d.tokens[asset].mint(user, collateral)
    d.tokens[asset].approve(user, d.engine.address, collateral)
    d.engine.deposit_collateral_and_mint_dsc(user, asset, collateral, debt)


def engine_state(d: Deployment) -> tuple:
    """Everything an operation may touch, for all-or-nothing comparisons."""
    engine = d.engine
    book = tuple(
        (user, engine.dsc_minted(user),
         tuple(engine.collateral_balance(user, a) for a in engine.registered_assets()))
        for user in engine.users()
    )
    balances = tuple(
        sorted((w, tuple(sorted((u, q) for u, q in d.ledger.get_wallet_balances(w).items() if q)))
               for w in d.ledger.list_wallets())
    )
    allowances = tuple(
        (symbol, repr(d.ledger.get_unit_state(symbol))) for symbol in d.ledger.list_units()
    )
    return book, balances, allowances, len(engine.events), len(d.ledger.transaction_log)

