from __future__ import annotations

import logging
import random as _random
import time
import typing as tp

import anyio

from httpsim._cache import CacheStore, generate_cache_key
from httpsim._config import SimulatorOptions
from httpsim._cookies import CookieJar
from httpsim._exceptions import InvalidURLError, PacketLossError, TransportError
from httpsim._mock import MockGenerator
from httpsim._transport import Transport
from httpsim._utils import BaseClock, Clock, extract_domain, is_secure_url
from httpsim.models import (
    CacheHit,
    ConcurrentBatch,
    ConcurrentRequest,
    ConcurrentResult,
    SimulationRequest,
    SimulationResult,
    StoredResponse,
    TransportResult,
)

logger = logging.getLogger("httpsim.simulator")

__all__ = ("Simulator", "RealRequestFailed")

FALLBACK_CACHE_CONTROL = "max-age=3600"


class RealRequestFailed(TransportError):
    """A real request that came back without a usable response."""

    def __init__(self, result: TransportResult) -> None:
        super().__init__(
            result.error_message or "Request failed",
            error_type=result.error_type or "Unknown Error",
            status_code=result.status_code,
            error_code=result.error_code,
        )
        self.result = result


class Simulator:
    """
    Drives a simulated request through the cache, the cookie jar and either
    the real transport or the mock generator.

    The simulator owns its `CacheStore` and `CookieJar`; build one per
    process and hand it to whatever serves the requests.
    """

    def __init__(
        self,
        options: tp.Optional[SimulatorOptions] = None,
        cache: tp.Optional[CacheStore] = None,
        cookies: tp.Optional[CookieJar] = None,
        transport: tp.Optional[Transport] = None,
        mock: tp.Optional[MockGenerator] = None,
        random: tp.Optional[_random.Random] = None,
        clock: tp.Optional[BaseClock] = None,
    ) -> None:
        self.options = options or SimulatorOptions()
        self._clock = clock if clock else Clock()
        self._random = random or _random.Random()
        self.cache = cache or CacheStore(
            default_max_age=self.options.default_max_age,
            revalidation_threshold=self.options.revalidation_threshold,
            clock=self._clock,
        )
        self.cookies = cookies or CookieJar(
            session_lifetime=self.options.session_cookie_lifetime,
            clock=self._clock,
        )
        self._transport = transport
        self.mock = mock or MockGenerator(self.options, random=self._random)

    @property
    def transport(self) -> Transport:
        if self._transport is None:
            self._transport = Transport(self.options)
        return self._transport

    async def aclose(self) -> None:
        if self._transport is not None:
            await self._transport.aclose()

    def cleanup(self) -> tp.Tuple[int, int]:
        """Sweeps both stores, returns (cache entries removed, cookies removed)."""
        return self.cache.cleanup(), self.cookies.cleanup()

    async def simulate_request(self, request: SimulationRequest) -> SimulationResult:
        method = (request.method or "GET").upper()
        url = request.url
        delay = self.options.clamp_delay(request.delay)
        packet_loss = self.options.clamp_packet_loss(request.packet_loss)

        logger.debug(f"Simulating {method} {url} (real={request.use_real_request}).")

        if packet_loss > 0 and self._random.random() * 100 < packet_loss:
            raise PacketLossError(packet_loss)

        if delay > 0:
            await anyio.sleep(delay / 1000)

        if request.use_cache:
            lookup = self.cache.retrieve(url, method, request.request_headers)

            if isinstance(lookup, CacheHit):
                logger.debug(f"Cache HIT for {url} ({lookup.type}).")
                return SimulationResult(
                    timeline=self.mock.cache_timeline(),
                    total_time=10,
                    response=StoredResponse(
                        status_code=lookup.status_code,
                        status_text=lookup.status_text,
                        headers=lookup.headers,
                        body=lookup.body,
                    ),
                    connection_type=request.connection_type,
                    real=request.use_real_request,
                    cached=True,
                    cache_info={
                        "hit": True,
                        "type": lookup.type,
                        "age": lookup.cache_age,
                        "remaining_time": lookup.remaining_time,
                        "should_revalidate": self.cache.should_revalidate(url, method),
                    },
                )

            logger.debug(f"Cache MISS for {url} ({lookup.reason}).")

        if request.use_real_request:
            result = await self._real_request(request, method, delay)
        else:
            result = self._mock_request(request, method)

        if request.use_cookies:
            result.cookie_info = {
                "stored": len(self.cookies.get_cookies(url)),
                "details": self.cookies.get_cookie_details(url),
            }
        return result

    async def _real_request(self, request: SimulationRequest, method: str, delay: float) -> SimulationResult:
        url = request.url
        if not self.transport.is_valid_url(url):
            raise InvalidURLError(f"Real requests need a public http(s) URL, got {url!r}")

        cookie_header = self.cookies.get_cookie_header(url)
        sent = await self.transport.send(url, method, self.options.real_request_timeout, cookies=cookie_header)

        if not sent.success:
            raise RealRequestFailed(sent)

        if sent.cookies:
            self.cookies.store_cookies(url, sent.cookies)

        response = StoredResponse(
            status_code=sent.status_code,
            status_text=sent.status_text,
            headers=sent.headers,
            body=sent.body,
            cookies=sent.cookies,
        )

        if request.use_cache and sent.status_code == 200:
            self.cache.store(url, method, response, sent.headers.get("Cache-Control") or FALLBACK_CACHE_CONTROL)

        return SimulationResult(
            timeline=self.mock.timeline_from_timing(sent.timing, delay),
            total_time=sent.timing.total + delay,
            response=response,
            connection_type=request.connection_type,
            real=True,
        )

    def _mock_request(self, request: SimulationRequest, method: str) -> SimulationResult:
        url = request.url
        timeline = self.mock.random_timeline()
        response = self.mock.generate_response(url, method, use_cookies=request.use_cookies, now=self._clock.now())

        if request.use_cookies and response.cookies:
            self.cookies.store_cookies(url, response.cookies)

        if request.use_cache:
            self.cache.store(url, method, response, FALLBACK_CACHE_CONTROL)

        return SimulationResult(
            timeline=timeline,
            total_time=round(sum(stage.duration for stage in timeline)),
            response=response,
            connection_type=request.connection_type,
            real=False,
        )

    async def simulate_concurrent(
        self,
        requests: tp.Sequence[ConcurrentRequest],
        delay: tp.Optional[float] = None,
        protocol: tp.Literal["HTTP/1.1", "HTTP/2"] = "HTTP/2",
        use_real_request: bool = False,
    ) -> ConcurrentBatch:
        """
        Runs a batch of requests the way each protocol schedules them.

        HTTP/2 multiplexes every request over one connection, so they all
        run at once. HTTP/1.1 sends them one after another over a single
        connection, each waiting for the previous response.
        """
        delay = self.options.clamp_delay(delay)
        results: tp.List[tp.Optional[ConcurrentResult]] = [None] * len(requests)
        started = time.monotonic()

        async def run(index: int, item: ConcurrentRequest) -> None:
            offset = (time.monotonic() - started) * 1000
            results[index] = await self._concurrent_item(index, item, delay, use_real_request, offset)

        if protocol == "HTTP/2":
            async with anyio.create_task_group() as tg:
                for index, item in enumerate(requests):
                    tg.start_soon(run, index, item)
        else:
            for index, item in enumerate(requests):
                await run(index, item)

        total = round((time.monotonic() - started) * 1000)
        logger.debug(f"{protocol} batch of {len(requests)} requests took {total}ms.")

        return ConcurrentBatch(
            protocol=protocol,
            requests=[result for result in results if result is not None],
            total_time=total,
            concurrent=protocol == "HTTP/2",
            real=use_real_request,
        )

    async def _concurrent_item(
        self,
        index: int,
        item: ConcurrentRequest,
        delay: float,
        use_real_request: bool,
        offset: float,
    ) -> ConcurrentResult:
        method = (item.method or "GET").upper()

        if delay > 0:
            await anyio.sleep(delay / 1000)

        if use_real_request and self.transport.is_valid_url(item.url):
            sent = await self.transport.send(item.url, method, self.options.concurrent_request_timeout)
            return ConcurrentResult(
                id=index + 1,
                url=item.url,
                method=method,
                status_code=sent.status_code,
                time=sent.timing.total + delay,
                real=True,
                success=sent.success,
                started_at=round(offset),
            )

        return ConcurrentResult(
            id=index + 1,
            url=item.url,
            method=method,
            status_code=200,
            time=self.mock.concurrent_time(delay),
            real=False,
            started_at=round(offset),
        )

    async def diagnose(self, url: str) -> tp.Dict[str, tp.Any]:
        valid = self.transport.is_valid_url(url)
        reachable = await self.transport.check_reachability(url) if valid else False

        return {
            "url": url,
            "valid": valid,
            "reachable": reachable,
            "domain": extract_domain(url),
            "secure": is_secure_url(url),
            "cookies": len(self.cookies.get_cookies(url)),
            "cached": generate_cache_key(url) in self.cache,
            "should_revalidate": self.cache.should_revalidate(url),
        }
