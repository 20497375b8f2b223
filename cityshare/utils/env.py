"""Typed readers for environment variables; blank values count as unset."""
import os
from typing import Callable, Iterable, List, Optional, TypeVar

T = TypeVar("T")

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


def _raw(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parsed(name: str, default: T, parse: Callable[[str], T], kind: str) -> T:
    value = _raw(name)
    if value is None:
        return default
    try:
        return parse(value)
    except ValueError:
        raise ValueError(f"{name} must be {kind}, got {value!r}") from None


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(value)


def env_bool(name: str, *, default: bool = False) -> bool:
    return _parsed(name, default, _parse_bool, "a boolean")


def env_int(name: str, *, default: int) -> int:
    return _parsed(name, default, int, "an integer")


def env_float(name: str, *, default: float) -> float:
    return _parsed(name, default, float, "a number")


def env_list(name: str, *, default: Optional[Iterable[str]] = None, separator: str = ",") -> List[str]:
    """Comma separated list; empty entries are dropped.

    ``default`` applies only when the variable is absent, so ``FOO=`` yields ``[]``.
    """
    value = os.getenv(name)
    if value is None:
        return list(default or [])
    return [part.strip() for part in value.split(separator) if part.strip()]
