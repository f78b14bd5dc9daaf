"""
conftest.py - Shared pytest fixtures for DSC engine tests

Provides common fixtures used across unit, conformance and functional tests:
- Bare ledgers
- Single-collateral systems priced at $10 (the worked examples' numbers)
- A two-collateral system
- The default local deployment
"""

import pytest

from dsc import Ledger, deploy_local

from tests.helpers import T0, build_system, answer, units


@pytest.fixture
def ledger():
    """Empty quiet ledger starting at T0."""
    return Ledger("test", initial_time=T0, verbose=False)


@pytest.fixture
def system():
    """One collateral (WETH at $10), alice and bob registered but unfunded."""
    d = build_system()
    d.ledger.register_wallet("alice")
    d.ledger.register_wallet("bob")
    return d


@pytest.fixture
def funded_system(system):
    """system with 10 WETH in alice's wallet."""
    system.weth.mint("alice", units(10))
    return system


@pytest.fixture
def two_asset_system():
    """WETH at $10 and WBTC at $20."""
    d = build_system({"WETH": answer(10), "WBTC": answer(20)})
    d.ledger.register_wallet("alice")
    d.ledger.register_wallet("bob")
    return d


@pytest.fixture
def local_deployment():
    """The default deploy_local() network (WETH $2000, WBTC $1000)."""
    return deploy_local()
