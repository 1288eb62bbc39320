"""Caller identity checks for admin and participant entry points."""

from __future__ import annotations

from dataclasses import dataclass

from squadpool.errors import PermissionDenied, Unauthenticated


@dataclass(frozen=True)
class Caller:
    uid: str | None
    is_admin: bool = False


SCHEDULER = Caller(uid="scheduler", is_admin=True)


def require_auth(caller: Caller | None) -> Caller:
    if caller is None or not caller.uid:
        raise Unauthenticated("You must be signed in.")
    return caller


def require_admin(caller: Caller | None) -> Caller:
    caller = require_auth(caller)
    if not caller.is_admin:
        raise PermissionDenied("Admin access required.")
    return caller
