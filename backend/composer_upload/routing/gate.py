"""Routing gate: split a batch between upload handlers and the transport.

Order of checks (all before any transfer starts):
    1. Bucket files by their first matching handler route.
    2. Call each handler once with its raw files. One refusal (or a handler
       that raises) aborts the whole add, including files no handler claimed.
    3. Enforce the simultaneous-upload limit on the files left for the
       transport (0 disables the limit).
"""
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..exceptions import CapacityExceeded, RoutingFailure
from ..files import RawFile
from .handlers import HandlerRegistry, HandlerToken

logger = logging.getLogger(__name__)


@dataclass
class RoutingResult:
    """Outcome of routing one batch.

    Attributes:
        unhandled: Files that go on to the transport, in submission order
        routed: Files claimed by each handler registration
    """
    unhandled: List[RawFile] = field(default_factory=list)
    routed: Dict[HandlerToken, List[RawFile]] = field(default_factory=dict)

    @property
    def routed_count(self) -> int:
        return sum(len(files) for files in self.routed.values())


class RoutingGate:
    def __init__(self, registry: HandlerRegistry, max_simultaneous: int = 0):
        self.registry = registry
        self.max_simultaneous = max_simultaneous

    def partition(self, files: List[RawFile]) -> RoutingResult:
        result = RoutingResult()
        for file in files:
            route = self.registry.find(file.name)
            if route is None:
                result.unhandled.append(file)
            else:
                result.routed.setdefault(route.token, []).append(file)
        return result

    async def route(self, files: List[RawFile], coordinator: Any) -> RoutingResult:
        """Partition a batch and hand claimed files to their handlers.

        Raises:
            RoutingFailure: A handler refused its files or raised.
            CapacityExceeded: Too many files left for the transport.
        """
        result = self.partition(files)

        for token, bucket in result.routed.items():
            route = self.registry.get(token)
            if route is None:
                continue
            try:
                accepted = route.handler(bucket, coordinator)
                if inspect.isawaitable(accepted):
                    accepted = await accepted
            except Exception as e:
                logger.warning(f"Upload handler for {', '.join(sorted(route.extensions))} raised: {e}")
                raise RoutingFailure(route.extensions, len(bucket)) from e
            if not accepted:
                raise RoutingFailure(route.extensions, len(bucket))
            logger.info(f"Upload handler for {', '.join(sorted(route.extensions))} took {len(bucket)} file(s)")

        count = len(result.unhandled)
        if self.max_simultaneous > 0 and count > self.max_simultaneous:
            raise CapacityExceeded(count, self.max_simultaneous)

        return result
