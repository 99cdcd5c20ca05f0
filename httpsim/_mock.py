from __future__ import annotations

import random as _random
import string
import typing as tp

from httpsim._config import SimulatorOptions
from httpsim._headers import Headers
from httpsim._utils import body_size, generate_http_date, to_iso
from httpsim.models import StoredResponse, TimelineStage, Timing

__all__ = ("MockGenerator", "STAGES")

STAGES = (
    "DNS Lookup",
    "TCP Connection",
    "TLS Handshake",
    "Request Sent",
    "Waiting (TTFB)",
    "Content Download",
)

# (minimum, spread) in milliseconds for each stage of a fabricated timeline
STAGE_RANGES = (
    (50, 50),
    (30, 30),
    (80, 40),
    (10, 10),
    (100, 100),
    (50, 50),
)

# share of the total time spent in each stage
STAGE_SHARES = (0.1, 0.15, 0.15, 0.1, 0.3, 0.2)

CACHE_TIMELINE = (
    ("Cache Lookup", 5),
    ("Validation", 3),
    ("Cache Hit", 2),
)

ERROR_PATTERNS = (
    (("404", "notfound"), 404, "Not Found", "Resource not found"),
    (("500", "error"), 500, "Internal Server Error", "Server error occurred"),
    (("403", "forbidden"), 403, "Forbidden", "Access denied"),
)

_ALPHANUMERIC = string.ascii_letters + string.digits


def _with_start_times(durations: tp.Iterable[tp.Tuple[str, float]]) -> tp.List[TimelineStage]:
    timeline = []
    elapsed: float = 0
    for stage, duration in durations:
        timeline.append(TimelineStage(stage=stage, duration=duration, start_time=elapsed))
        elapsed += duration
    return timeline


class MockGenerator:
    """
    Fabricates responses, cookies and connection timelines.

    Pass a seeded `random.Random` to get reproducible output.
    """

    def __init__(
        self,
        options: tp.Optional[SimulatorOptions] = None,
        random: tp.Optional[_random.Random] = None,
    ) -> None:
        self._options = options or SimulatorOptions()
        self._random = random or _random.Random()

    def random_string(self, length: int) -> str:
        return "".join(self._random.choice(_ALPHANUMERIC) for _ in range(length))

    def generate_etag(self) -> str:
        return f'"{self.random_string(13).lower()}"'

    def generate_cookies(self) -> tp.List[str]:
        session_id = self.random_string(32)
        user_id = self._random.randint(0, 99_999)
        csrf_token = self.random_string(40)

        return [
            f"sessionId={session_id}; Path=/; HttpOnly; Secure; Max-Age=3600; SameSite=Strict",
            f"userId={user_id}; Path=/; Max-Age=86400; SameSite=Lax",
            "theme=dark; Path=/; Max-Age=2592000",
            "language=en; Path=/; Max-Age=31536000",
            f"csrf_token={csrf_token}; Path=/; Secure; SameSite=Strict",
            'preferences={"notifications":true,"autoplay":false}; Path=/; Max-Age=604800',
        ]

    def generate_response(
        self,
        url: str,
        method: str = "GET",
        use_cache: bool = False,
        use_cookies: bool = False,
        now: tp.Optional[int] = None,
    ) -> StoredResponse:
        """
        Builds a response for the URL.

        URLs mentioning 404/notfound, 500/error or 403/forbidden get the
        matching error; `use_cache` answers with a canned 304.
        """
        method = method.upper()
        cookies = self.generate_cookies() if use_cookies else []

        if use_cache:
            headers = Headers(self._options.default_headers)
            headers.update(
                {
                    "Cache-Control": "max-age=3600",
                    "ETag": '"33a64df551425fcc55e4d42a148795d9f25f89d4"',
                    "Last-Modified": generate_http_date(None if now is None else now - 3_600_000),
                }
            )
            return StoredResponse(
                status_code=304,
                status_text="Not Modified",
                headers=headers,
                body=None,
                cookies=cookies,
            )

        status_code, status_text = 200, "OK"
        lowered = url.lower()
        for patterns, code, text, message in ERROR_PATTERNS:
            if any(pattern in lowered for pattern in patterns):
                status_code, status_text = code, text
                body: tp.Any = {"error": message}
                break
        else:
            body = self.generate_body(method, url, now)

        headers = Headers(self._options.default_headers)
        headers.update(
            {
                "Content-Length": str(body_size(body)),
                "Date": generate_http_date(now),
                "Connection": "keep-alive",
                "Cache-Control": "no-cache",
                "ETag": self.generate_etag(),
                "X-Response-Time": f"{self._random.randint(0, 99)}ms",
            }
        )

        return StoredResponse(
            status_code=status_code,
            status_text=status_text,
            headers=headers,
            body=body,
            cookies=cookies,
        )

    def generate_body(self, method: str, url: str, now: tp.Optional[int] = None) -> tp.Dict[str, tp.Any]:
        timestamp = to_iso(now) if now is not None else None
        resource_id = self._random.randint(0, 999)

        if method == "GET":
            return {
                "message": "Data retrieved successfully",
                "data": {
                    "id": resource_id,
                    "url": url,
                    "timestamp": timestamp,
                    "items": [
                        {"id": i + 1, "name": f"Item {i + 1}", "value": self._random.randint(0, 99)} for i in range(5)
                    ],
                },
                "method": "GET",
            }
        if method == "POST":
            return {
                "message": "Resource created successfully",
                "data": {"id": resource_id, "created": timestamp, "url": url},
                "method": "POST",
            }
        if method == "PUT":
            return {
                "message": "Resource updated successfully",
                "data": {"id": resource_id, "updated": timestamp, "url": url},
                "method": "PUT",
            }
        if method == "DELETE":
            return {
                "message": "Resource deleted successfully",
                "data": {"id": resource_id, "deleted": timestamp},
                "method": "DELETE",
            }
        return {"message": "Request processed", "timestamp": timestamp}

    def random_timeline(self) -> tp.List[TimelineStage]:
        return _with_start_times(
            (stage, minimum + self._random.random() * spread)
            for stage, (minimum, spread) in zip(STAGES, STAGE_RANGES)
        )

    def timeline_from_delay(self, delay: float) -> tp.List[TimelineStage]:
        """Splits a simulated delay over the connection stages."""
        return _with_start_times((stage, int(delay * share)) for stage, share in zip(STAGES, STAGE_SHARES))

    def timeline_from_timing(self, timing: Timing, simulated_delay: float = 0) -> tp.List[TimelineStage]:
        """Measured stage timings, each padded with an even share of the simulated delay."""
        padding = int(simulated_delay / len(STAGES))
        durations = (timing.dns, timing.tcp, timing.tls, timing.request, timing.waiting, timing.download)
        return _with_start_times((stage, duration + padding) for stage, duration in zip(STAGES, durations))

    def cache_timeline(self) -> tp.List[TimelineStage]:
        return _with_start_times(CACHE_TIMELINE)

    def concurrent_time(self, delay: float) -> float:
        return delay + self._random.random() * 100
