"""Minimal Ok/Err result type.

Used at the seams where an operational failure is an expected outcome the
caller branches on (storage bootstrap, command surface). Everything below
those seams raises.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeGuard


@dataclass(slots=True, frozen=True)
class Ok[T]:
    ok_value: T


@dataclass(slots=True, frozen=True)
class Err[E]:
    err_value: E


type Result[T, E] = Ok[T] | Err[E]


def is_ok(result: Ok[Any] | Err[Any]) -> TypeGuard[Ok[Any]]:
    return isinstance(result, Ok)


def is_err(result: Ok[Any] | Err[Any]) -> TypeGuard[Err[Any]]:
    return isinstance(result, Err)
