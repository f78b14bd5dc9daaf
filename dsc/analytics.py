"""
analytics.py - What-if tooling for positions

Off-ledger analysis a liquidator or a dashboard runs against the engine.
Nothing here mutates state or sits on the execution path, so floats and
numpy are fine; the engine itself stays in integer fixed point.

Provides:
- health_factor_curve: health factor under relative price shocks (vectorized)
- liquidation_price: the asset price at which a user's health factor hits 1.0
- liquidation_probability: chance the price ends at or below that level
  under a zero-drift lognormal model (trading days, 252/year)
- position_report: per-asset breakdown of a user's position
"""

import math
import numpy as np
from typing import Any, Dict, Optional, Union
from scipy.special import erf as scipy_erf

from .core import (
    PRECISION, LIQUIDATION_THRESHOLD, LIQUIDATION_PRECISION, MAX_HEALTH_FACTOR,
)
from .solvency import SolvencyEngine, calculate_price, calculate_usd_value


Numeric = Union[float, np.ndarray]

TRADING_DAYS_PER_YEAR = 252.0
SQRT_2 = math.sqrt(2.0)


def _normal_cdf(x: Numeric) -> Numeric:
    return 0.5 * (1.0 + scipy_erf(np.asarray(x) / SQRT_2))


# ============================================================================
# CURVES
# ============================================================================

def health_factor_curve(total_dsc_minted: int, collateral_value_usd: int, shocks) -> np.ndarray:
    """
    Health factor (as a float, 1.0 = liquidation threshold) if every
    collateral price moved by shock.

    Args:
        total_dsc_minted: Debt, 18 decimals
        collateral_value_usd: Current collateral value, 18 decimals
        shocks: Relative price moves, e.g. np.linspace(-0.5, 0.5, 11)

    Returns:
        Array shaped like shocks; inf where there is no debt.

    Example:
        health_factor_curve(50 * 10**18, 100 * 10**18, [-0.2, 0.0])
        # array([0.8, 1.0])
    """
    shocks = np.asarray(shocks, dtype=float)
    if np.any(shocks < -1.0):
        raise ValueError("price shocks cannot be below -100%")
    if total_dsc_minted == 0:
        return np.full_like(shocks, np.inf)

    ratio = LIQUIDATION_THRESHOLD / LIQUIDATION_PRECISION
    collateral = collateral_value_usd / PRECISION * (1.0 + shocks)
    return collateral * ratio / (total_dsc_minted / PRECISION)


def liquidation_price(engine: SolvencyEngine, user: str, asset: str) -> Optional[int]:
    """
    Price of asset (USD, 18 decimals) at which user's health factor reaches
    MIN_HEALTH_FACTOR, all other prices held fixed.

    Returns:
        None if user has no debt or no deposit of asset; 0 if the other
        collateral alone keeps the position healthy.
    """
    debt = engine._accounts.dsc_minted(user)
    balance = engine._accounts.collateral_balance(user, asset)
    if debt == 0 or balance == 0:
        return None

    token = engine._registry.token(asset)
    other_value = engine.account_collateral_value_usd(user) - engine.usd_value(asset, balance)
    required_value = -(-debt * LIQUIDATION_PRECISION // LIQUIDATION_THRESHOLD)
    shortfall = required_value - other_value
    if shortfall <= 0:
        return 0
    return shortfall * 10**token.decimals // balance


def liquidation_probability(spot: Numeric, liquidation_level: Numeric, volatility: Numeric, t_in_days: Numeric) -> Numeric:
    """
    P(price at t_in_days <= liquidation_level) for a zero-drift lognormal price.

    P = N((ln(L/S) + 0.5*σ²*t) / (σ*√t))

    Raises:
        ValueError: If any input is non-positive or not finite
    """
    for name, value in (("spot", spot), ("liquidation_level", liquidation_level),
                        ("volatility", volatility), ("t_in_days", t_in_days)):
        arr = np.asarray(value, dtype=float)
        if not np.all(np.isfinite(arr)) or np.any(arr <= 0):
            raise ValueError(f"{name} must be positive and finite")

    s = np.asarray(spot, dtype=float)
    level = np.asarray(liquidation_level, dtype=float)
    v = np.asarray(volatility, dtype=float)
    t = np.asarray(t_in_days, dtype=float) / TRADING_DAYS_PER_YEAR
    z = (np.log(level / s) + 0.5 * v * v * t) / (v * np.sqrt(t))
    return _normal_cdf(z)


# ============================================================================
# REPORTS
# ============================================================================

def position_report(engine: SolvencyEngine, user: str) -> Dict[str, Any]:
    """
    Per-asset breakdown of user's position, in human units.

    Example:
        {
            'user': 'alice',
            'debt': 50.0,
            'collateral_value_usd': 100.0,
            'health_factor': 1.0,
            'assets': {'WETH': {'balance': 10.0, 'price': 10.0,
                                'value_usd': 100.0, 'liquidation_price': 10.0}},
        }
    """
    assets: Dict[str, Dict[str, Any]] = {}
    for asset in engine._registry:
        token = engine._registry.token(asset)
        balance = engine._accounts.collateral_balance(user, asset)
        price_round = engine.price_round(asset)
        level = liquidation_price(engine, user, asset)
        assets[asset] = {
            'balance': balance / 10**token.decimals,
            'price': calculate_price(price_round) / PRECISION,
            'value_usd': calculate_usd_value(price_round, balance, token.decimals) / PRECISION,
            'liquidation_price': None if level is None else level / PRECISION,
        }

    info = engine.account_info(user)
    health_factor = engine.health_factor(user)
    return {
        'user': user,
        'debt': info.total_dsc_minted / PRECISION,
        'collateral_value_usd': info.collateral_value_usd / PRECISION,
        'health_factor': math.inf if health_factor == MAX_HEALTH_FACTOR else health_factor / PRECISION,
        'assets': assets,
    }
