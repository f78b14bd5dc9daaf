"""
test_engine.py - Unit tests for DSCEngine construction and getters
"""

import pytest

from dsc import (
    DSCEngine, Ledger, MintableToken, StableCoin, StaticPriceFeed,
    LengthMismatch, DuplicateAsset, UnknownAsset, ENGINE_WALLET,
    PRECISION, ADDITIONAL_FEED_PRECISION, LIQUIDATION_THRESHOLD,
    LIQUIDATION_PRECISION, LIQUIDATION_BONUS, MIN_HEALTH_FACTOR,
)

from tests.helpers import T0, ONE, units, answer, deposit, open_position


@pytest.fixture
def parts(ledger):
    weth = MintableToken(ledger, "WETH", "Wrapped Ether")
    wbtc = MintableToken(ledger, "WBTC", "Wrapped Bitcoin")
    feed = StaticPriceFeed(
        {"ETH_USD": answer(2000), "BTC_USD": answer(1000)}, clock=lambda: ledger.current_time
    )
    dsc = StableCoin(ledger, owner=ENGINE_WALLET)
    return ledger, weth, wbtc, feed, dsc


class TestConstruction:

    def test_registers_engine_wallet(self, parts):
        ledger, weth, wbtc, feed, dsc = parts
        engine = DSCEngine(ledger, [weth, wbtc], ["ETH_USD", "BTC_USD"], dsc, feed)
        assert engine.address == ENGINE_WALLET
        assert ledger.is_registered(ENGINE_WALLET)

    def test_existing_wallet_is_reused(self, parts):
        ledger, weth, wbtc, feed, dsc = parts
        ledger.register_wallet("vault")
        engine = DSCEngine(ledger, [weth], ["ETH_USD"], dsc, feed, address="vault")
        assert engine.address == "vault"

    def test_length_mismatch(self, parts):
        ledger, weth, wbtc, feed, dsc = parts
        with pytest.raises(LengthMismatch):
            DSCEngine(ledger, [weth, wbtc], ["ETH_USD"], dsc, feed)
        assert not ledger.is_registered(ENGINE_WALLET)

    def test_duplicate_asset(self, parts):
        ledger, weth, wbtc, feed, dsc = parts
        with pytest.raises(DuplicateAsset):
            DSCEngine(ledger, [weth, weth], ["ETH_USD", "BTC_USD"], dsc, feed)


class TestGetters:

    def test_registry_getters(self, parts):
        ledger, weth, wbtc, feed, dsc = parts
        engine = DSCEngine(ledger, [weth, wbtc], ["ETH_USD", "BTC_USD"], dsc, feed)
        assert engine.registered_assets() == ("WETH", "WBTC")
        assert engine.price_feed_id("WBTC") == "BTC_USD"
        assert engine.collateral_token("WETH") is weth
        with pytest.raises(UnknownAsset):
            engine.price_feed_id("DOGE")

    def test_constants(self, system):
        engine = system.engine
        assert engine.precision == PRECISION
        assert engine.additional_feed_precision == ADDITIONAL_FEED_PRECISION
        assert engine.liquidation_threshold == LIQUIDATION_THRESHOLD
        assert engine.liquidation_precision == LIQUIDATION_PRECISION
        assert engine.liquidation_bonus == LIQUIDATION_BONUS
        assert engine.min_health_factor == MIN_HEALTH_FACTOR

    def test_position_getters(self, system):
        open_position(system, "alice", "WETH", units(10), units(20))
        open_position(system, "bob", "WETH", units(5), units(5))
        engine = system.engine
        assert engine.collateral_balance("alice", "WETH") == units(10)
        assert engine.dsc_minted("alice") == units(20)
        assert engine.users() == ["alice", "bob"]
        assert engine.total_collateral("WETH") == units(15)
        assert engine.total_dsc_minted() == units(25)
        assert engine.protocol_collateral_value_usd() == 150 * ONE

    def test_unknown_user_reads_zero(self, system):
        assert system.engine.collateral_balance("nobody", "WETH") == 0
        assert system.engine.dsc_minted("nobody") == 0

    def test_repr(self, system):
        assert "WETH" in repr(system.engine)
