"""
Configuration package for the silo ledger.

Provides centralized access to constants and environment configuration.

Usage:
    from Config import constants_silo as silo_constants
    print(silo_constants.MOVEMENT_EDIT_WINDOW_HOURS)

    from Config.environment import env
    print(f"Running in {env.env_name} mode")
"""

# Auto-load environment on package import
from Config.environment import env, is_docker, env_name

from Config import constants_silo

__all__ = [
    'env',
    'is_docker',
    'env_name',
    'constants_silo',
]
