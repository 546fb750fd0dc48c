"""Call context supplied by the host and the result handed back to it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


@dataclass(frozen=True)
class Env:
    """Authenticated caller plus the current block."""

    sender: str
    time: int
    height: int = 0


@dataclass
class Response:
    """Outcome of an execute call, as action + string attributes."""

    action: str
    attributes: Dict[str, str] = field(default_factory=dict)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.attributes.get(key, default)

    def to_dict(self) -> Dict[str, str]:
        return {"action": self.action, **self.attributes}
