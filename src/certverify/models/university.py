"""University entity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class University:
    id: str
    name: str
    public_key: str | None = None
    verified: bool = False
    email: str | None = None
    address: str | None = None
    phone: str | None = None
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH
