"""Configuration package for lockbox.

Re-exports the constants from :mod:`config.settings` so callers can write
``from config import KEY_LENGTH``. Keep the values themselves in settings.py.
"""

from .settings import *  # noqa: F401,F403
from .settings import __all__  # noqa: F401
