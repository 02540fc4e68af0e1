"""
Permission engine application layer.
"""

from .services import *
from .services import __all__
