from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict, deque

from flask import current_app, jsonify, request
from flask.views import MethodView

logger = logging.getLogger(__name__)

RATE_LIMITER_KEY = "santaswap.rate_limiter"


class RateLimiter:
    """Sliding-window request counter per client."""

    def __init__(self, max_requests: int = 10, window_seconds: float = 60.0, clock=time.monotonic) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()

    def is_limited(self, client_id: str) -> bool:
        now = self._clock()
        with self._lock:
            self._evict_idle(now)
            hits = self._hits[client_id]
            if len(hits) >= self.max_requests:
                return True
            hits.append(now)
            return False

    def _evict_idle(self, now: float) -> None:
        for cid in list(self._hits):
            hits = self._hits[cid]
            while hits and now - hits[0] >= self.window_seconds:
                hits.popleft()
            if not hits:
                del self._hits[cid]

    @property
    def tracked_clients(self) -> int:
        return len(self._hits)


def client_id() -> str:
    return request.remote_addr or "unknown"


class RateLimitedMixin(MethodView):
    """Answers 429 once the client exceeds the app's request budget."""

    def dispatch_request(self, *args, **kwargs):
        limiter = current_app.extensions[RATE_LIMITER_KEY]
        cid = client_id()
        if limiter.is_limited(cid):
            logger.warning("Rate limit exceeded for client %s", cid)
            return jsonify(error="Too many requests. Please wait a minute."), 429
        return super().dispatch_request(*args, **kwargs)
