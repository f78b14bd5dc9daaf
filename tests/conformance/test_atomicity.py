"""
Atomicity Conformance Tests

INVARIANT: Engine operations are all-or-nothing.

    ∀ operation op, state S:
        op(S) raises ⟹ state after == S
            (account book, ledger balances, allowances, events, transaction log)

Every failure path, wherever it occurs in an operation, must be
indistinguishable from the operation never having been called.
"""

import pytest
from hypothesis import given, settings, HealthCheck
from hypothesis import strategies as st

from dsc import EngineError, TokenError

from tests.helpers import units, answer, build_system, engine_state


USERS = ["alice", "bob", "carol"]


@st.composite
def operation(draw):
    kind = draw(st.sampled_from([
        "deposit", "redeem", "mint", "burn", "deposit_and_mint",
        "redeem_for_dsc", "liquidate", "price",
    ]))
    user = draw(st.sampled_from(USERS))
    other = draw(st.sampled_from(USERS))
    amount = draw(st.integers(min_value=0, max_value=units(60)))
    second = draw(st.integers(min_value=0, max_value=units(60)))
    price = draw(st.integers(min_value=1, max_value=20))
    return kind, user, other, amount, second, price


def _approve(d, op):
    """Approvals are committed transactions of their own, made before the call."""
    kind, user, other, amount, second, price = op
    if kind in ("deposit", "deposit_and_mint"):
        d.weth.approve(user, d.engine.address, amount)
    elif kind == "burn":
        d.dsc.approve(user, d.engine.address, amount)
    elif kind == "redeem_for_dsc":
        d.dsc.approve(user, d.engine.address, second)
    elif kind == "liquidate":
        d.dsc.approve(other, d.engine.address, amount)


def _call(d, op):
    kind, user, other, amount, second, price = op
    engine = d.engine
    if kind == "deposit":
        engine.deposit_collateral(user, "WETH", amount)
    elif kind == "redeem":
        engine.redeem_collateral(user, "WETH", amount)
    elif kind == "mint":
        engine.mint_dsc(user, amount)
    elif kind == "burn":
        engine.burn_dsc(user, amount)
    elif kind == "deposit_and_mint":
        engine.deposit_collateral_and_mint_dsc(user, "WETH", amount, second)
    elif kind == "redeem_for_dsc":
        engine.redeem_collateral_for_dsc(user, "WETH", amount, second)
    elif kind == "liquidate":
        engine.liquidate(other, "WETH", user, amount)
    else:
        d.set_price("WETH", answer(price))


def _apply(d, op):
    _approve(d, op)
    _call(d, op)


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(st.lists(operation(), min_size=1, max_size=25))
    @settings(max_examples=75, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_failed_operations_change_nothing(self, ops):
        """
        PROPERTY: For any operation sequence, each call that raises leaves
        the whole system exactly as it was before the call.
        """
        d = build_system()
        for user in USERS:
            d.ledger.register_wallet(user)
            d.weth.mint(user, units(50))

        for op in ops:
            _approve(d, op)
            before = engine_state(d)
            try:
                _call(d, op)
            except (EngineError, TokenError):
                assert engine_state(d) == before
            assert d.ledger.verify_double_entry()['valid']


class TestAtomicityExamples:
    """Explicit atomicity examples."""

    def test_failing_health_check_after_transfer_rolls_back_transfer(self, system):
        """Redeem pushes collateral out before checking health."""
        d = system
        d.weth.mint("alice", units(10))
        _apply(d, ("deposit_and_mint", "alice", "alice", units(10), units(50), 10))
        before = engine_state(d)
        with pytest.raises(EngineError):
            d.engine.redeem_collateral("alice", "WETH", units(1))
        assert engine_state(d) == before

    def test_failing_burn_inside_composite_rolls_back_everything(self, system):
        d = system
        d.weth.mint("alice", units(10))
        _apply(d, ("deposit_and_mint", "alice", "alice", units(10), units(50), 10))
        d.dsc.approve("alice", d.engine.address, units(10))
        before = engine_state(d)
        with pytest.raises(EngineError):
            # Allowance covers 10, burn asks 20
            d.engine.redeem_collateral_for_dsc("alice", "WETH", units(1), units(20))
        assert engine_state(d) == before

    def test_success_after_failure_still_works(self, system):
        d = system
        d.weth.mint("alice", units(10))
        with pytest.raises(EngineError):
            d.engine.deposit_collateral("alice", "WETH", units(1))
        _apply(d, ("deposit", "alice", "alice", units(1), 0, 10))
        assert d.engine.collateral_balance("alice", "WETH") == units(1)
