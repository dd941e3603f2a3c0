from flask import current_app

from .policies import RATE_LIMITER_KEY, RateLimiter
from .services.assignments import AssignmentEngine
from .storage import DataStore

STORE_KEY = "santaswap.store"
ENGINE_KEY = "santaswap.engine"


def init_extensions(app, store: DataStore, engine: AssignmentEngine, limiter: RateLimiter) -> None:
    app.extensions[STORE_KEY] = store
    app.extensions[ENGINE_KEY] = engine
    app.extensions[RATE_LIMITER_KEY] = limiter


def get_store() -> DataStore:
    return current_app.extensions[STORE_KEY]


def get_engine() -> AssignmentEngine:
    return current_app.extensions[ENGINE_KEY]
