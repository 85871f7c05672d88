# stock_ledger/services/constants.py
"""
Centralized constants for the Stock Ledger services.

Fee rates mirror exchange-mandated charges and are not configurable.

Usage:
    from stock_ledger.services.constants import (
        COMMISSION_RATE,
        MIN_COMMISSION,
        MONEY_QUANTUM,
    )
"""

from decimal import Decimal


# =============================================================================
# TRADING FEES
# =============================================================================

# Broker commission, charged on both sides: 0.03% of the trade amount
COMMISSION_RATE: Decimal = Decimal("0.0003")

# Commission floor per trade (binds for amounts up to ~16,666.67)
MIN_COMMISSION: Decimal = Decimal("5.00")

# Stamp duty, charged on sells only: 0.1%
STAMP_DUTY_RATE: Decimal = Decimal("0.001")

# Transfer fee, charged on both sides: 0.002%
TRANSFER_FEE_RATE: Decimal = Decimal("0.00002")


# =============================================================================
# PRECISION
# =============================================================================

# Presented money values (fees, amounts, P&L)
MONEY_QUANTUM: Decimal = Decimal("0.01")

# Per-share prices (average cost)
PRICE_QUANTUM: Decimal = Decimal("0.0001")

# Percentages (return rates)
PERCENT_QUANTUM: Decimal = Decimal("0.01")


# =============================================================================
# SECURITIES
# =============================================================================

# Exchange security codes are always six digits, zero-padded
STOCK_CODE_LENGTH: int = 6


# =============================================================================
# QUOTES
# =============================================================================

# Consecutive provider failures before the circuit opens
QUOTE_CIRCUIT_FAILURE_THRESHOLD: int = 5

# Seconds the circuit stays open before a trial request
QUOTE_CIRCUIT_RECOVERY_SECONDS: float = 60.0

# Retry attempts for transient provider errors
QUOTE_RETRY_ATTEMPTS: int = 3


# =============================================================================
# IMPORT
# =============================================================================

# Maximum upload size accepted by the import endpoint (5 MB)
MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

# Minimum header matches before a broker template can be auto-detected
MIN_TEMPLATE_MATCHES: int = 3

# Minimum share of a template's columns that must be present
MIN_TEMPLATE_MATCH_RATIO: Decimal = Decimal("0.6")


# =============================================================================
# BACKUP
# =============================================================================

BACKUP_FORMAT_VERSION: str = "1.0"
