"""Configuration module for LusoCards."""

from .settings import Config
from .languages import LANG_CONFIG

__all__ = [
    'Config',
    'LANG_CONFIG',
]
