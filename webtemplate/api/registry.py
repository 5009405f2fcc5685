"""Route Registry — public/private buckets of deferred route registrars.

Invariants:
    - Registration order is bind order; no deduplication
    - apply() runs every registrar of a bucket exactly once per call, in order; it is
      not guarded, so applying a bucket twice binds its routes twice
    - Buckets are filled while the app is built and only iterated afterwards

Design Decisions:
    - Registry is an instance owned by one app, filled by explicit calls from each
      feature module's register_routes(registry), never by import side effects
    - Duplicate paths are left to the router: Starlette matches routes in bind order,
      so the first registrar to bind a path serves it
"""

import logging
from enum import Enum
from typing import Callable

from fastapi import APIRouter

logger = logging.getLogger(__name__)

Registrar = Callable[[APIRouter], None]


class Bucket(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class RouteRegistry:
    """Ordered registrars for the public and private route groups."""

    def __init__(self):
        self._buckets: dict[Bucket, list[Registrar]] = {
            Bucket.PUBLIC: [],
            Bucket.PRIVATE: [],
        }

    def register(self, bucket: Bucket | str, fn: Registrar) -> None:
        bucket = Bucket(bucket)
        self._buckets[bucket].append(fn)
        logger.debug(
            f"Route registrar added to {bucket.value} bucket",
            extra={"bucket": bucket.value, "count": len(self._buckets[bucket])},
        )

    def register_public(self, fn: Registrar) -> None:
        self.register(Bucket.PUBLIC, fn)

    def register_private(self, fn: Registrar) -> None:
        self.register(Bucket.PRIVATE, fn)

    def registrars(self, bucket: Bucket | str) -> tuple[Registrar, ...]:
        return tuple(self._buckets[Bucket(bucket)])

    def apply(self, bucket: Bucket | str, router: APIRouter) -> int:
        """Bind every registrar of *bucket* to *router*; returns how many ran."""
        bucket = Bucket(bucket)
        registrars = self._buckets[bucket]
        logger.info(
            f"Applying {bucket.value} routes",
            extra={"bucket": bucket.value, "count": len(registrars)},
        )
        for i, fn in enumerate(registrars, start=1):
            fn(router)
            logger.debug(
                f"{bucket.value} registrar {i} applied",
                extra={"bucket": bucket.value, "index": i},
            )
        logger.info(
            f"Applied {len(registrars)} {bucket.value} registrar(s)",
            extra={"bucket": bucket.value, "count": len(registrars)},
        )
        return len(registrars)

    def stats(self) -> dict[str, int]:
        public = len(self._buckets[Bucket.PUBLIC])
        private = len(self._buckets[Bucket.PRIVATE])
        return {"public": public, "private": private, "total": public + private}
