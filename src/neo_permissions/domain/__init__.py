"""
Permission engine domain layer.

Entities, value objects and the protocols of external collaborators.
"""

from .entities import *
from .value_objects import *
from .protocols import *

from .entities import __all__ as _entities_all
from .value_objects import __all__ as _value_objects_all
from .protocols import __all__ as _protocols_all

__all__ = [*_entities_all, *_value_objects_all, *_protocols_all]
