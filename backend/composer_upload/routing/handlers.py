"""Registry of extension-keyed upload handlers.

External collaborators (plugins) can intercept files by extension before they
reach the transport. Registering returns a HandlerToken; the gate buckets files
per token so each handler receives all of its files in a single call.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Union

from ..files import RawFile

logger = logging.getLogger(__name__)

# (files, coordinator) -> success; a falsy result aborts the whole add
UploadHandler = Callable[[List[RawFile], Any], Union[bool, Awaitable[bool]]]


@dataclass(frozen=True)
class HandlerToken:
    """Stable identity of a registration."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class HandlerRoute:
    token: HandlerToken
    extensions: FrozenSet[str]
    handler: UploadHandler

    def matches(self, file_name: str) -> bool:
        lowered = (file_name or "").lower()
        return any(lowered.endswith(f".{ext}") for ext in self.extensions)


class HandlerRegistry:
    """Ordered handler routes; the first matching route wins."""

    def __init__(self) -> None:
        self._routes: Dict[HandlerToken, HandlerRoute] = {}

    def __len__(self) -> int:
        return len(self._routes)

    def register(self, extensions: Iterable[str], handler: UploadHandler) -> HandlerToken:
        normalized = frozenset(ext.strip().lstrip(".").lower() for ext in extensions if ext.strip())
        if not normalized:
            raise ValueError("An upload handler needs at least one extension")

        token = HandlerToken()
        self._routes[token] = HandlerRoute(token=token, extensions=normalized, handler=handler)
        logger.info(f"Registered upload handler for {', '.join(sorted(normalized))}")
        return token

    def unregister(self, token: HandlerToken) -> bool:
        return self._routes.pop(token, None) is not None

    def get(self, token: HandlerToken) -> Optional[HandlerRoute]:
        return self._routes.get(token)

    def find(self, file_name: str) -> Optional[HandlerRoute]:
        for route in self._routes.values():
            if route.matches(file_name):
                return route
        return None
