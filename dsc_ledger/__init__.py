"""
dsc_ledger - Over-collateralized Stable-Value Accounting Engine

Users deposit collateral, mint a USD-pegged stable token (DSC) against it,
and third parties liquidate positions whose health factor falls below 1.0.

Usage:
    from dsc_ledger import Engine, Erc20Token, StableToken, MockPriceFeed, to_wad

    weth = Erc20Token("WETH", "Wrapped Ether")
    feed = MockPriceFeed(decimals=8, initial_answer=2000 * 10**8)
    dsc = StableToken(owner="dsc_engine")
    engine = Engine([weth], [feed], dsc)

    weth.faucet("alice", to_wad(10))
    weth.approve("alice", engine.address, to_wad(10))
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", to_wad(10), to_wad(5000))
"""

# Core types
from .core import (
    PRECISION,
    MIN_HEALTH_FACTOR,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_BONUS,
    LIQUIDATION_PRECISION,
    MAX_UINT256,
    DEFAULT_ENGINE_ADDRESS,
    PriceRound,
    PriceFeed,
    CollateralToken,
    LiabilityToken,
    CollateralDeposited,
    CollateralRedeemed,
    DscMinted,
    DscBurned,
    Liquidated,
    EngineError,
    InvalidAmount,
    AssetNotAllowed,
    ConfigurationMismatch,
    TransferFailed,
    MintFailed,
    HealthFactorBroken,
    HealthFactorIntact,
    HealthFactorNotImproved,
    ArithmeticUnderflow,
    ArithmeticOverflow,
    Reentrancy,
    InvalidPrice,
    StalePrice,
    InvalidCaller,
    TokenError,
    to_wad,
    from_wad,
)

# Configuration
from .config import (
    EngineParameters,
    AssetDeployment,
    DeploymentConfig,
    parse_deployment_config,
    load_deployment_config,
)

# Pricing
from .pricing_source import (
    MockPriceFeed,
    PriceOracleAdapter,
    ValueConverter,
)

# Ledgers and registry
from .positions import CollateralLedger, DebtLedger
from .registry import AssetConfig, AssetRegistry

# Health and liquidation
from .health import AccountInformation, HealthFactorEngine, calculate_health_factor
from .liquidation import (
    LiquidationEngine,
    LiquidationQuote,
    LiquidationResult,
    calculate_liquidation_bonus,
)

# Engine
from .engine import Engine

# Reference collaborators and local deployment
from .tokens import Erc20Token, StableToken
from .deploy import Deployment, deploy, local_deployment_config

__all__ = [
    # Constants
    'PRECISION', 'MIN_HEALTH_FACTOR', 'LIQUIDATION_THRESHOLD', 'LIQUIDATION_BONUS',
    'LIQUIDATION_PRECISION', 'MAX_UINT256', 'DEFAULT_ENGINE_ADDRESS',
    # Core types
    'PriceRound', 'PriceFeed', 'CollateralToken', 'LiabilityToken',
    'CollateralDeposited', 'CollateralRedeemed', 'DscMinted', 'DscBurned', 'Liquidated',
    # Errors
    'EngineError', 'InvalidAmount', 'AssetNotAllowed', 'ConfigurationMismatch',
    'TransferFailed', 'MintFailed', 'HealthFactorBroken', 'HealthFactorIntact',
    'HealthFactorNotImproved', 'ArithmeticUnderflow', 'ArithmeticOverflow',
    'Reentrancy', 'InvalidPrice', 'StalePrice', 'InvalidCaller', 'TokenError',
    # Helpers
    'to_wad', 'from_wad',
    # Configuration
    'EngineParameters', 'AssetDeployment', 'DeploymentConfig',
    'parse_deployment_config', 'load_deployment_config',
    # Pricing
    'MockPriceFeed', 'PriceOracleAdapter', 'ValueConverter',
    # Ledgers
    'CollateralLedger', 'DebtLedger', 'AssetConfig', 'AssetRegistry',
    # Health and liquidation
    'AccountInformation', 'HealthFactorEngine', 'calculate_health_factor',
    'LiquidationEngine', 'LiquidationQuote', 'LiquidationResult',
    'calculate_liquidation_bonus',
    # Engine
    'Engine',
    # Collaborators
    'Erc20Token', 'StableToken', 'Deployment', 'deploy', 'local_deployment_config',
]

__version__ = '1.0.0'
