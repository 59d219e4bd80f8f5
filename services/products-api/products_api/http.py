from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Union


class Headers(Mapping[str, str]):
    """Read-only header mapping with case-insensitive lookup."""

    def __init__(self, raw: Optional[Mapping[str, Any]] = None) -> None:
        self._items: Dict[str, tuple[str, str]] = {}
        for key, value in (raw or {}).items():
            if value is None:
                continue
            self._items[str(key).lower()] = (str(key), str(value))

    def __getitem__(self, key: str) -> str:
        return self._items[key.lower()][1]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._items

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"Headers({dict(self.items())!r})"


@dataclass(frozen=True)
class ApiRequest:
    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    path_params: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None
    request_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        if not isinstance(self.headers, Headers):
            object.__setattr__(self, "headers", Headers(self.headers))

    @property
    def authorization(self) -> Optional[str]:
        value = self.headers.get("Authorization")
        return value.strip() if value and value.strip() else None


@dataclass(frozen=True)
class ApiResponse:
    """The `{statusCode, body}` envelope; `body` is already JSON-encoded."""

    status_code: int
    body: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def json(cls, status_code: int, payload: Any, headers: Optional[Mapping[str, str]] = None) -> "ApiResponse":
        all_headers = {"Content-Type": "application/json"}
        all_headers.update(headers or {})
        return cls(status_code=status_code, body=json.dumps(payload, default=str), headers=all_headers)

    def to_envelope(self) -> Dict[str, Any]:
        return {"statusCode": self.status_code, "headers": dict(self.headers), "body": self.body}
