"""
Silo ledger constants and tunable parameters.

Constants defined here are defaults that can be overridden via environment
variables when needed for operational tuning.
"""
import os
from decimal import Decimal

# ============================================================================
# Ledger Computation
# ============================================================================

LEDGER_PROCESSING_ORDER = os.getenv('LEDGER_PROCESSING_ORDER', 'chronological').lower()
"""'chronological' interleaves inbound/outbound by timestamp; 'phased' drains all outbound after all inbound"""

QUANTITY_DECIMALS = int(os.getenv('QUANTITY_DECIMALS', '3'))
"""Decimal places accepted for kilogram quantities; at most the 3 the quantity columns store"""

PERCENT_DECIMALS = 2
"""Decimal places kept for utilization percentages"""

# ============================================================================
# Movement Admission Bounds
# ============================================================================

MIN_MOVEMENT_KG = Decimal(os.getenv('MIN_MOVEMENT_KG', '0.1'))
"""Smallest inbound/outbound quantity accepted"""

MAX_MOVEMENT_KG = Decimal(os.getenv('MAX_MOVEMENT_KG', '100000'))
"""Largest single inbound/outbound quantity accepted"""

MIN_SILO_CAPACITY_KG = Decimal('1')
MAX_SILO_CAPACITY_KG = Decimal(os.getenv('MAX_SILO_CAPACITY_KG', '500000'))
"""Silo capacity bounds for registry writes"""

QUALITY_PERCENT_MIN = Decimal('0')
QUALITY_PERCENT_MAX = Decimal('100')
"""Bounds for proteins / humidity readings (percent)"""

# ============================================================================
# Edit & Removal Windows
# ============================================================================

MOVEMENT_EDIT_WINDOW_HOURS = int(os.getenv('MOVEMENT_EDIT_WINDOW_HOURS', '24'))
"""Movements older than this may not be deleted"""

SILO_DELETE_QUIET_DAYS = int(os.getenv('SILO_DELETE_QUIET_DAYS', '30'))
"""A silo with inbound newer than this may not be removed"""

# ============================================================================
# Utilization Buckets (inclusive upper bounds, percent)
# ============================================================================

BUCKET_LOW_MAX = Decimal('25')
BUCKET_MEDIUM_MAX = Decimal('50')
BUCKET_HIGH_MAX = Decimal('75')
"""Anything above BUCKET_HIGH_MAX is 'full'; exactly 0 is 'empty'"""

UNKNOWN_GROUP_LABEL = 'Unknown'
"""Label for movements missing the grouping attribute"""
