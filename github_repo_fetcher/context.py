"""Shared state passed explicitly to every client and controller."""

from dataclasses import dataclass, field

from .cache import ResponseCache
from .rate_limit import RateLimitTracker
from .settings import Settings, get_settings


@dataclass
class ApiContext:
    """Rate limit tracker and response cache shared by all consumers of one API."""

    settings: Settings = field(default_factory=get_settings)
    rate_limit: RateLimitTracker = field(default_factory=RateLimitTracker)
    cache: ResponseCache = field(default_factory=ResponseCache)
