"""Caller credentials forwarded to the generation service."""

from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class ForwardedAuth:
    """Opaque authorization material captured from the submitting request."""

    authorization: str | None = None
    cookie: str | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "ForwardedAuth":
        return cls(
            authorization=headers.get("authorization"),
            cookie=headers.get("cookie"),
        )

    def headers(self) -> dict[str, str]:
        out: dict[str, str] = {}
        if self.authorization:
            out["Authorization"] = self.authorization
        if self.cookie:
            out["Cookie"] = self.cookie
        return out

    def __repr__(self) -> str:
        return (
            f"ForwardedAuth(authorization={'present' if self.authorization else 'missing'}, "
            f"cookie={'present' if self.cookie else 'missing'})"
        )
