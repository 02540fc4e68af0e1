"""
Interfaces exposing the engine to web frameworks.
"""

from .dependencies import *
from .dependencies import __all__
