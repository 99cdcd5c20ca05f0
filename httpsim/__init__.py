__version__ = "2.0.0"

from httpsim._cache import CacheStore as CacheStore, generate_cache_key as generate_cache_key
from httpsim._config import SimulatorOptions as SimulatorOptions
from httpsim._cookies import CookieJar as CookieJar
from httpsim._exceptions import (
    InvalidURLError as InvalidURLError,
    PacketLossError as PacketLossError,
    SimulatorError as SimulatorError,
    TransportError as TransportError,
)
from httpsim._headers import (
    CacheDirectives as CacheDirectives,
    Headers as Headers,
    parse_cache_control as parse_cache_control,
)
from httpsim._mock import MockGenerator as MockGenerator
from httpsim._simulator import RealRequestFailed as RealRequestFailed, Simulator as Simulator
from httpsim._transport import Transport as Transport
from httpsim._utils import BaseClock as BaseClock, Clock as Clock
from httpsim.models import (
    CacheEntry as CacheEntry,
    CacheHit as CacheHit,
    CacheLookupResult as CacheLookupResult,
    CacheMetadata as CacheMetadata,
    CacheMiss as CacheMiss,
    ConcurrentBatch as ConcurrentBatch,
    ConcurrentRequest as ConcurrentRequest,
    ConcurrentResult as ConcurrentResult,
    CookieAttributes as CookieAttributes,
    CookieDetails as CookieDetails,
    CookieRecord as CookieRecord,
    CookieValidation as CookieValidation,
    SimulationRequest as SimulationRequest,
    SimulationResult as SimulationResult,
    StoredResponse as StoredResponse,
    TimelineStage as TimelineStage,
    Timing as Timing,
    TransportResult as TransportResult,
)

__all__ = (
    # Stores
    "CacheStore",
    "CookieJar",
    "generate_cache_key",
    ## Headers
    "Headers",
    "CacheDirectives",
    "parse_cache_control",
    ## Models
    "StoredResponse",
    "CacheEntry",
    "CacheMetadata",
    "CacheHit",
    "CacheMiss",
    "CacheLookupResult",
    "CookieAttributes",
    "CookieRecord",
    "CookieDetails",
    "CookieValidation",
    "TimelineStage",
    "Timing",
    "TransportResult",
    "SimulationRequest",
    "SimulationResult",
    "ConcurrentRequest",
    "ConcurrentResult",
    "ConcurrentBatch",
    # Simulation
    "Simulator",
    "SimulatorOptions",
    "MockGenerator",
    "Transport",
    # Clocks
    "BaseClock",
    "Clock",
    # Errors
    "SimulatorError",
    "InvalidURLError",
    "PacketLossError",
    "TransportError",
    "RealRequestFailed",
)
