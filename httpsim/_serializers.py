from __future__ import annotations

import dataclasses
import typing as tp

from httpsim._headers import Headers
from httpsim.models import (
    CacheHit,
    CacheLookupResult,
    CacheMiss,
    ConcurrentBatch,
    CookieRecord,
    SimulationResult,
    StoredResponse,
    TransportResult,
)

__all__ = (
    "snake_to_camel",
    "dump",
    "dump_response",
    "dump_lookup",
    "dump_cookie",
    "dump_simulation",
    "dump_batch",
    "dump_transport_failure",
)


def snake_to_camel(text: str) -> str:
    """
    Convert snake_case string to camelCase.

    Examples:
        >>> snake_to_camel("remaining_time")
        'remainingTime'
        >>> snake_to_camel("etag")
        'etag'
    """
    head, *rest = text.split("_")
    return head + "".join(word.capitalize() for word in rest)


def dump(value: tp.Any) -> tp.Any:
    """
    Turn models into JSON-ready data.

    Dataclasses and dict keys become camelCase, `Headers` keep their
    original spelling.
    """
    if isinstance(value, Headers):
        return dict(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {snake_to_camel(f.name): dump(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {snake_to_camel(key) if isinstance(key, str) else key: dump(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [dump(item) for item in value]
    return value


def dump_response(response: StoredResponse, cached: bool = False) -> tp.Dict[str, tp.Any]:
    return {
        "statusCode": response.status_code,
        "statusText": response.status_text,
        "headers": dict(response.headers),
        "body": response.body,
        "cached": cached,
        "cookies": list(response.cookies),
    }


def dump_lookup(result: CacheLookupResult) -> tp.Dict[str, tp.Any]:
    if isinstance(result, CacheMiss):
        payload: tp.Dict[str, tp.Any] = {"hit": False, "reason": result.reason}
        if result.expired_at is not None:
            payload["expiredAt"] = result.expired_at
        return payload

    hit = tp.cast(CacheHit, result)
    return {
        "hit": True,
        "type": hit.type,
        "statusCode": hit.status_code,
        "statusText": hit.status_text,
        "headers": dict(hit.headers),
        "body": hit.body,
        "cached": hit.cached,
        "cacheAge": hit.cache_age,
        "remainingTime": hit.remaining_time,
    }


def dump_cookie(cookie: CookieRecord) -> tp.Dict[str, tp.Any]:
    payload = dump(cookie)
    payload["attributes"] = {key: value for key, value in payload["attributes"].items() if value not in (None, False)}
    return tp.cast(tp.Dict[str, tp.Any], payload)


def dump_simulation(result: SimulationResult) -> tp.Dict[str, tp.Any]:
    payload: tp.Dict[str, tp.Any] = {
        "success": True,
        "timeline": dump(result.timeline),
        "totalTime": result.total_time,
        "response": dump_response(result.response, cached=result.cached),
        "connectionType": result.connection_type,
        "real": result.real,
        "cached": result.cached,
    }
    if result.cache_info is not None:
        payload["cacheInfo"] = dump(result.cache_info)
    payload["cookieInfo"] = dump(result.cookie_info) if result.cookie_info is not None else None
    return payload


def dump_batch(batch: ConcurrentBatch) -> tp.Dict[str, tp.Any]:
    payload = tp.cast(tp.Dict[str, tp.Any], dump(batch))
    payload["success"] = True
    return payload


def dump_transport_failure(result: TransportResult) -> tp.Dict[str, tp.Any]:
    return {
        "success": False,
        "real": True,
        "error": result.error_type,
        "message": result.error_message,
        "errorCode": result.error_code,
        "statusCode": result.status_code,
        "troubleshooting": list(result.troubleshooting),
        "timing": dump(result.timing),
    }
