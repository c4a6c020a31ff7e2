"""
Configuration System

Configuration Priority (highest to lowest):
    1. Programmatic (passed to DiceConfig())
    2. Environment variables (DICE_* prefix, optionally from a .env file)
    3. Config file (DiceConfig.from_file)
    4. Built-in defaults

Modules:
    settings: DiceConfig class
    pricing: Model pricing table for cost telemetry
"""

from dice_kg.config.settings import DiceConfig

__all__ = ["DiceConfig"]
