from .paths import name_from_path
from .time import parse_timestamp, sort_timestamp

__all__ = [
    "name_from_path",
    "parse_timestamp",
    "sort_timestamp",
]
