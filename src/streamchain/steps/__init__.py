from .filter import Filter
from .flat_map import FlatMap
from .map import Map
from .reduce import NOT_PROVIDED, Reduce

__all__ = [
    "Filter",
    "FlatMap",
    "Map",
    "NOT_PROVIDED",
    "Reduce",
]
