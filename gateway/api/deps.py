# ==============================
# API Dependencies / Singletons
# ==============================
from __future__ import annotations

from functools import lru_cache

from broker.app import build_dispatcher
from broker.config.loader import load_settings
from broker.config.schema import Settings
from broker.logging.logger import bootstrap_logger
from broker.operations.dispatcher import Dispatcher


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings, _ = load_settings()
    return settings


@lru_cache(maxsize=1)
def get_dispatcher() -> Dispatcher:
    settings = get_settings()
    bootstrap_logger(settings)
    return build_dispatcher(settings)
