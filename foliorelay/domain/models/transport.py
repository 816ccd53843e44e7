"""Value objects exchanged with the Transport port."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class TransportRequest:
    """One HTTP-like request, independent of any client library."""
    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)
    json_body: Optional[Any] = None
    timeout_s: Optional[float] = None


@dataclass(frozen=True)
class TransportResponse:
    """Status code, headers and decoded body of a completed request.

    `body` is the decoded JSON document when the payload was JSON, otherwise
    the raw text. Header names are stored lower-cased.
    """
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", {k.lower(): v for k, v in dict(self.headers).items()})

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300
