"""
dsc - Overcollateralized Synthetic Dollar Engine

Users deposit approved collateral, mint DSC (a dollar-pegged stable coin)
against it, and every state change is gated by a health-factor check.
Positions below the minimum health factor can be partially liquidated by
anyone for a 10% collateral bonus.

Usage:
    from dsc import deploy_local

    d = deploy_local()
    d.fund("alice")

    d.weth.approve("alice", d.engine.address, 10 * 10**18)
    d.engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10 * 10**18, 5_000 * 10**18)
    d.engine.health_factor("alice")        # 2 * 10**18

    d.set_price("WETH", 900 * 10**8)        # health factor 0.9

    d.fund("bob")
    d.weth.approve("bob", d.engine.address, 10 * 10**18)
    d.engine.deposit_collateral_and_mint_dsc("bob", "WETH", 10 * 10**18, 1_000 * 10**18)
    d.dsc.approve("bob", d.engine.address, 1_000 * 10**18)
    d.engine.liquidate("bob", "WETH", "alice", 1_000 * 10**18)
"""

# Core types
from .core import (
    # Constants
    PRECISION,
    FEED_DECIMALS,
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_PRECISION,
    LIQUIDATION_BONUS,
    MIN_HEALTH_FACTOR,
    MAX_HEALTH_FACTOR,
    ORACLE_TIMEOUT,
    SYSTEM_WALLET,
    ENGINE_WALLET,
    UNIT_TYPE_TOKEN,
    UNIT_TYPE_STABLECOIN,
    # Records
    PriceRound,
    AccountInformation,
    CollateralDeposited,
    CollateralRedeemed,
    # Protocols
    PriceFeed,
    CollateralToken,
    LiabilityToken,
    # Balance book
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    UnitStateChange,
    Unit,
    ExecuteResult,
    build_transaction,
    token_unit,
    stablecoin_unit,
    to_fixed,
    from_fixed,
    # Exceptions
    EngineError,
    InvalidInput,
    ZeroAmount,
    UnknownAsset,
    LengthMismatch,
    DuplicateAsset,
    InsufficientCollateral,
    InsufficientDebt,
    ExternalCallFailed,
    OracleUnavailable,
    TransferFailed,
    MintFailed,
    InvariantViolation,
    HealthFactorBroken,
    HealthFactorOk,
    HealthFactorNotImproved,
    ReentrantCall,
    LedgerError,
    UnitNotRegistered,
    WalletNotRegistered,
    TokenError,
    NotOwner,
    BurnAmountExceedsBalance,
)

# Collaborators
from .ledger import Ledger
from .tokens import Token, MintableToken, StableCoin
from .price_feed import StaticPriceFeed, TimeSeriesPriceFeed, stale_checked_round

# Engine
from .accounts import CollateralRegistry, AccountBook
from .solvency import (
    SolvencyEngine,
    calculate_price,
    calculate_usd_value,
    calculate_token_amount_from_usd,
    calculate_health_factor,
)
from .positions import PositionManager
from .liquidation import LiquidationEngine, LiquidationQuote, calculate_liquidation
from .engine import DSCEngine

# Deployment
from .deploy import NetworkConfig, CollateralConfig, Deployment, deploy_local

# Analytics
from .analytics import (
    health_factor_curve,
    liquidation_price,
    liquidation_probability,
    position_report,
)

__all__ = [
    # Constants
    'PRECISION', 'FEED_DECIMALS', 'ADDITIONAL_FEED_PRECISION',
    'LIQUIDATION_THRESHOLD', 'LIQUIDATION_PRECISION', 'LIQUIDATION_BONUS',
    'MIN_HEALTH_FACTOR', 'MAX_HEALTH_FACTOR', 'ORACLE_TIMEOUT',
    'SYSTEM_WALLET', 'ENGINE_WALLET', 'UNIT_TYPE_TOKEN', 'UNIT_TYPE_STABLECOIN',
    # Records
    'PriceRound', 'AccountInformation', 'CollateralDeposited', 'CollateralRedeemed',
    # Protocols
    'PriceFeed', 'CollateralToken', 'LiabilityToken',
    # Balance book
    'Ledger', 'Move', 'Transaction', 'PendingTransaction', 'TransactionOrigin',
    'OriginType', 'UnitStateChange', 'Unit', 'ExecuteResult', 'build_transaction',
    'token_unit', 'stablecoin_unit', 'to_fixed', 'from_fixed',
    # Exceptions
    'EngineError', 'InvalidInput', 'ZeroAmount', 'UnknownAsset', 'LengthMismatch',
    'DuplicateAsset', 'InsufficientCollateral', 'InsufficientDebt',
    'ExternalCallFailed', 'OracleUnavailable', 'TransferFailed', 'MintFailed',
    'InvariantViolation', 'HealthFactorBroken', 'HealthFactorOk',
    'HealthFactorNotImproved', 'ReentrantCall',
    'LedgerError', 'UnitNotRegistered', 'WalletNotRegistered',
    'TokenError', 'NotOwner', 'BurnAmountExceedsBalance',
    # Tokens and prices
    'Token', 'MintableToken', 'StableCoin',
    'StaticPriceFeed', 'TimeSeriesPriceFeed', 'stale_checked_round',
    # Engine
    'CollateralRegistry', 'AccountBook', 'SolvencyEngine', 'PositionManager',
    'LiquidationEngine', 'LiquidationQuote', 'DSCEngine',
    'calculate_price', 'calculate_usd_value', 'calculate_token_amount_from_usd',
    'calculate_health_factor', 'calculate_liquidation',
    # Deployment
    'NetworkConfig', 'CollateralConfig', 'Deployment', 'deploy_local',
    # Analytics
    'health_factor_curve', 'liquidation_price', 'liquidation_probability',
    'position_report',
]

__version__ = '1.0.0'
