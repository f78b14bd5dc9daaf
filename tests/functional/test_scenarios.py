"""
test_scenarios.py - End-to-end scenarios

Tests:
- The worked example: 10 tokens @ $10, mint to the limit, price drop, liquidation
- Full position lifecycle back to zero
- Multi-collateral positions
- A price crash replayed from a historical path with TimeSeriesPriceFeed
- Oracle staleness freezing the system until a fresh round arrives
"""

import pytest
from datetime import timedelta

from dsc import (
    Ledger, MintableToken, StableCoin, DSCEngine, TimeSeriesPriceFeed,
    HealthFactorBroken, HealthFactorOk, OracleUnavailable,
    MAX_HEALTH_FACTOR, MIN_HEALTH_FACTOR,
)

from tests.helpers import T0, ONE, units, answer, open_position, deposit


class TestWorkedExample:
    """10 units at $10, 50 DSC minted, price falls to $8, 20 DSC covered."""

    def test_scenario(self, system):
        d = system
        engine = d.engine

        # Deposit 10 units at $10 and mint up to the limit
        d.weth.mint("alice", units(10))
        deposit(d, "alice", "WETH", units(10))
        assert engine.usd_value("WETH", units(10)) == 100 * ONE
        engine.mint_dsc("alice", units(50))
        assert engine.health_factor("alice") == MIN_HEALTH_FACTOR

        # One more wei breaks the position
        with pytest.raises(HealthFactorBroken):
            engine.mint_dsc("alice", 1)
        assert engine.dsc_minted("alice") == units(50)

        # A liquidator with a healthy position of their own
        open_position(d, "bob", "WETH", units(100), units(20))
        d.dsc.approve("bob", engine.address, units(20))

        with pytest.raises(HealthFactorOk):
            engine.liquidate("bob", "WETH", "alice", units(20))

        # Price drops: $80 collateral against 50 debt
        d.set_price("WETH", answer(8))
        assert engine.account_info("alice").collateral_value_usd == 80 * ONE
        assert engine.health_factor("alice") == units(0.8)

        quote = engine.liquidate("bob", "WETH", "alice", units(20))

        # 20 DSC of debt = 2.5 units, plus 10% bonus = 2.75 units = $22
        assert quote.total_seized == units(2.75)
        assert engine.usd_value("WETH", quote.total_seized) == 22 * ONE
        assert d.weth.balance_of("bob") == units(2.75)
        assert engine.health_factor("alice") > units(0.8)
        assert engine.health_factor("alice") == 29 * ONE // 30

        # Alice is still below the minimum; a second liquidation keeps improving her
        d.dsc.transfer("alice", "bob", units(10))
        d.dsc.approve("bob", engine.address, units(10))
        starting = engine.health_factor("alice")
        engine.liquidate("bob", "WETH", "alice", units(10))
        assert engine.health_factor("alice") > starting

        assert d.dsc.total_supply() == engine.total_dsc_minted()
        assert d.ledger.verify_double_entry()['valid']


class TestPositionLifecycle:

    def test_open_grow_shrink_close(self, funded_system):
        d = funded_system
        engine = d.engine

        d.weth.approve("alice", engine.address, units(10))
        engine.deposit_collateral_and_mint_dsc("alice", "WETH", units(6), units(10))
        engine.deposit_collateral("alice", "WETH", units(4))
        engine.mint_dsc("alice", units(15))
        assert engine.health_factor("alice") == 2 * ONE

        d.dsc.approve("alice", engine.address, units(25))
        engine.burn_dsc("alice", units(5))
        engine.redeem_collateral("alice", "WETH", units(2))
        engine.redeem_collateral_for_dsc("alice", "WETH", units(8), units(20))

        assert engine.health_factor("alice") == MAX_HEALTH_FACTOR
        assert engine.collateral_balance("alice", "WETH") == 0
        assert d.weth.balance_of("alice") == units(10)
        assert d.dsc.total_supply() == 0
        assert [type(e).__name__ for e in engine.events] == [
            "CollateralDeposited", "CollateralDeposited",
            "CollateralRedeemed", "CollateralRedeemed",
        ]


class TestMultiCollateral:

    def test_collateral_in_two_assets(self, two_asset_system):
        d = two_asset_system
        engine = d.engine
        d.tokens["WETH"].mint("alice", units(5))
        d.tokens["WBTC"].mint("alice", units(5))
        deposit(d, "alice", "WETH", units(5))    # $50
        deposit(d, "alice", "WBTC", units(5))    # $100

        engine.mint_dsc("alice", units(75))
        assert engine.health_factor("alice") == MIN_HEALTH_FACTOR

        # WBTC halves; liquidate by seizing WETH
        d.set_price("WBTC", answer(10))
        assert engine.health_factor("alice") == units(50) * ONE // units(75)

        open_position(d, "bob", "WETH", units(100), units(30))
        d.dsc.approve("bob", engine.address, units(30))
        starting = engine.health_factor("alice")
        engine.liquidate("bob", "WETH", "alice", units(30))

        assert engine.collateral_balance("alice", "WETH") == units(1.7)
        assert engine.health_factor("alice") > starting


class TestHistoricalCrash:

    def test_replayed_price_path(self):
        ledger = Ledger("replay", initial_time=T0, verbose=False)
        for wallet in ("alice", "bob"):
            ledger.register_wallet(wallet)
        weth = MintableToken(ledger, "WETH", "Wrapped Ether")
        feed = TimeSeriesPriceFeed(lambda: ledger.current_time, {
            "ETH_USD": [
                (T0, answer(2000)),
                (T0 + timedelta(hours=1), answer(1800)),
                (T0 + timedelta(hours=2), answer(1500)),
                (T0 + timedelta(hours=3), answer(1900)),
            ],
        })
        dsc = StableCoin(ledger, owner="deployer")
        engine = DSCEngine(ledger, [weth], ["ETH_USD"], dsc, feed)
        dsc.transfer_ownership("deployer", engine.address)

        weth.mint("alice", units(1))
        weth.approve("alice", engine.address, units(1))
        engine.deposit_collateral_and_mint_dsc("alice", "WETH", units(1), units(850))

        weth.mint("bob", units(10))
        weth.approve("bob", engine.address, units(10))
        engine.deposit_collateral_and_mint_dsc("bob", "WETH", units(10), units(100))

        dsc.approve("bob", engine.address, units(100))

        # $2000, $1800: healthy, nothing to liquidate
        for hour in (0, 1):
            ledger.advance_time(T0 + timedelta(hours=hour))
            assert engine.health_factor("alice") > MIN_HEALTH_FACTOR
            with pytest.raises(HealthFactorOk):
                engine.liquidate("bob", "WETH", "alice", units(100))

        # $1500: underwater, bob covers 100 DSC
        ledger.advance_time(T0 + timedelta(hours=2))
        starting = engine.health_factor("alice")
        assert starting < MIN_HEALTH_FACTOR
        engine.liquidate("bob", "WETH", "alice", units(100))
        assert engine.health_factor("alice") > starting

        # $1900: recovered
        ledger.advance_time(T0 + timedelta(hours=3))
        assert engine.health_factor("alice") > MIN_HEALTH_FACTOR

        replay = ledger.clone()
        assert replay.verify_double_entry()['valid']


class TestOracleOutage:

    def test_stale_price_freezes_debt_operations(self, system):
        d = system
        open_position(d, "alice", "WETH", units(10), units(10))
        d.ledger.advance_time(T0 + timedelta(hours=4))

        with pytest.raises(OracleUnavailable):
            d.engine.mint_dsc("alice", units(1))
        with pytest.raises(OracleUnavailable):
            d.engine.redeem_collateral("alice", "WETH", units(1))

        # Deposits do not read prices
        d.weth.mint("alice", units(1))
        deposit(d, "alice", "WETH", units(1))

        d.set_price("WETH", answer(10))
        d.engine.mint_dsc("alice", units(1))
        assert d.engine.dsc_minted("alice") == units(11)
