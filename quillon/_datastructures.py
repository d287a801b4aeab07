"""
Data structures shared by Request handling and parameter binding.

Provides:
- MultiDict: Multi-value dictionary for query parameters
- Headers: Case-insensitive header access over raw ASGI pairs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Dict, Iterator, List, Mapping, MutableMapping,
    Optional, Tuple, Union
)


# ============================================================================
# MultiDict
# ============================================================================

class MultiDict(MutableMapping[str, List[str]]):
    """
    Dictionary that supports multiple values per key.

    ``mapping[key]`` returns every value; ``get(key)`` returns the first.
    """

    def __init__(self, items: Optional[Union[List[Tuple[str, str]], Mapping[str, Union[str, List[str]]]]] = None):
        self._data: Dict[str, List[str]] = {}

        if isinstance(items, list):
            for key, value in items:
                self.add(key, value)
        elif items:
            for key, value in items.items():
                self._data[key] = list(value) if isinstance(value, list) else [value]

    def __getitem__(self, key: str) -> List[str]:
        return self._data[key]

    def __setitem__(self, key: str, value: Union[str, List[str]]) -> None:
        self._data[key] = value if isinstance(value, list) else [value]

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MultiDict({self._data!r})"

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get first value for a key."""
        values = self._data.get(key)
        return values[0] if values else default

    def get_all(self, key: str) -> List[str]:
        """Get all values for a key."""
        return list(self._data.get(key, []))

    def add(self, key: str, value: str) -> None:
        """Append a value to a key."""
        self._data.setdefault(key, []).append(value)

    def to_dict(self, multi: bool = False) -> Dict[str, Union[str, List[str]]]:
        """
        Convert to a plain dict.

        Args:
            multi: If True, keep every value as a list. Otherwise a key that
                   occurs once maps to its string and a repeated key maps to
                   the list of its values.
        """
        if multi:
            return {k: list(v) for k, v in self._data.items()}
        return {k: (v[0] if len(v) == 1 else list(v)) for k, v in self._data.items() if v}


# ============================================================================
# Headers
# ============================================================================

@dataclass
class Headers:
    """
    Case-insensitive header access with raw preservation.

    Lookups lower-case the name; ``raw`` keeps the ASGI byte pairs as sent.
    """

    raw: List[Tuple[bytes, bytes]] = field(default_factory=list)
    _index: Dict[str, List[str]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._index = {}
        for name, value in self.raw:
            self._index.setdefault(name.decode("latin-1").lower(), []).append(
                value.decode("latin-1")
            )

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get first value for header (case-insensitive)."""
        values = self._index.get(name.lower())
        return values[0] if values else default

    def get_all(self, name: str) -> List[str]:
        return list(self._index.get(name.lower(), []))

    def has(self, name: str) -> bool:
        return name.lower() in self._index

    def items(self) -> Iterator[Tuple[str, str]]:
        for name, value in self.raw:
            yield name.decode("latin-1"), value.decode("latin-1")

    def to_dict(self) -> Dict[str, str]:
        """Lower-cased names mapped to their values, repeats joined by ``", "``."""
        return {name: ", ".join(values) for name, values in self._index.items()}

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(f"Header '{name}' not found")
        return value

    def __repr__(self) -> str:
        return f"Headers({list(self.items())})"
