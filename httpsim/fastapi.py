from __future__ import annotations

import logging
import typing as t
from contextlib import asynccontextmanager

import anyio

from httpsim import __version__
from httpsim._config import SimulatorOptions
from httpsim._exceptions import InvalidURLError, PacketLossError
from httpsim._serializers import (
    dump,
    dump_batch,
    dump_cookie,
    dump_lookup,
    dump_simulation,
    dump_transport_failure,
)
from httpsim._simulator import RealRequestFailed, Simulator
from httpsim.models import ConcurrentRequest, SimulationRequest

try:
    import fastapi
    from fastapi.responses import JSONResponse
    from pydantic import BaseModel, ConfigDict, Field
    from pydantic.alias_generators import to_camel
except ImportError as e:
    raise ImportError(
        "fastapi is required to use httpsim.fastapi module. "
        "Please install httpsim with the 'fastapi' extra, "
        "e.g., 'pip install httpsim[fastapi]'."
    ) from e

logger = logging.getLogger("httpsim.fastapi")

__all__ = ("create_app", "router")

VERSION = __version__


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SimulateRequestBody(_Body):
    url: str = Field(min_length=1)
    method: str = "GET"
    delay: t.Optional[float] = Field(default=None, ge=0)
    packet_loss: float = Field(default=0, ge=0, le=100)
    connection_type: str = "keep-alive"
    use_cache: bool = False
    use_cookies: bool = False
    use_real_request: bool = False
    request_headers: t.Dict[str, str] = Field(default_factory=dict)


class ConcurrentItemBody(_Body):
    url: str = Field(min_length=1)
    method: str = "GET"


class ConcurrentBody(_Body):
    requests: t.List[ConcurrentItemBody] = Field(default_factory=list)
    delay: t.Optional[float] = Field(default=None, ge=0)
    use_real_request: bool = False


class CacheLookupBody(_Body):
    url: str = Field(min_length=1)
    method: str = "GET"
    request_headers: t.Dict[str, str] = Field(default_factory=dict)


class ClearCookiesBody(_Body):
    domain: t.Optional[str] = None


class ValidateCookieBody(_Body):
    set_cookie: str = Field(min_length=1)


class DiagnoseBody(_Body):
    url: str = Field(min_length=1)


router = fastapi.APIRouter(prefix="/api")


def get_simulator(request: fastapi.Request) -> Simulator:
    return t.cast(Simulator, request.app.state.simulator)


SimulatorDep = t.Annotated[Simulator, fastapi.Depends(get_simulator)]


@router.post("/simulate-request")
async def simulate_request(body: SimulateRequestBody, simulator: SimulatorDep) -> t.Any:
    try:
        result = await simulator.simulate_request(SimulationRequest(**body.model_dump()))
    except PacketLossError as exc:
        return {
            "success": False,
            "error": True,
            "packetLoss": True,
            "errorType": "Packet Lost",
            "errorMessage": str(exc),
            "statusCode": 0,
            "timeline": [],
            "totalTime": 0,
        }
    except InvalidURLError as exc:
        return JSONResponse(status_code=400, content={"error": "Invalid URL", "message": str(exc)})
    except RealRequestFailed as exc:
        return JSONResponse(status_code=500, content=dump_transport_failure(exc.result))
    except Exception as exc:
        logger.exception("Simulation failed")
        return JSONResponse(status_code=500, content={"error": "Simulation Failed", "message": str(exc)})
    return dump_simulation(result)


async def _simulate_batch(body: ConcurrentBody, simulator: Simulator, protocol: t.Literal["HTTP/1.1", "HTTP/2"]) -> t.Any:
    try:
        batch = await simulator.simulate_concurrent(
            [ConcurrentRequest(url=item.url, method=item.method) for item in body.requests],
            delay=body.delay,
            protocol=protocol,
            use_real_request=body.use_real_request,
        )
    except Exception as exc:
        logger.exception(f"{protocol} simulation failed")
        return JSONResponse(
            status_code=500,
            content={"error": f"{protocol} Simulation Error", "message": str(exc)},
        )
    return dump_batch(batch)


@router.post("/simulate-http2")
async def simulate_http2(body: ConcurrentBody, simulator: SimulatorDep) -> t.Any:
    return await _simulate_batch(body, simulator, "HTTP/2")


@router.post("/simulate-http1")
async def simulate_http1(body: ConcurrentBody, simulator: SimulatorDep) -> t.Any:
    return await _simulate_batch(body, simulator, "HTTP/1.1")


@router.get("/cache/stats")
async def cache_stats(simulator: SimulatorDep) -> t.Any:
    return dump(simulator.cache.get_stats())


@router.post("/cache/lookup")
async def cache_lookup(body: CacheLookupBody, simulator: SimulatorDep) -> t.Any:
    return dump_lookup(simulator.cache.retrieve(body.url, body.method, body.request_headers))


@router.post("/cache/clear")
async def cache_clear(simulator: SimulatorDep) -> t.Any:
    cleared = simulator.cache.clear()
    return {"message": f"Cleared {cleared} cache entries", "cleared": cleared}


@router.post("/cache/cleanup")
async def cache_cleanup(simulator: SimulatorDep) -> t.Any:
    return {"cleaned": simulator.cache.cleanup()}


@router.delete("/cache/{url:path}")
async def cache_invalidate(url: str, simulator: SimulatorDep, method: str = "GET") -> t.Any:
    deleted = simulator.cache.invalidate(url, method)
    return {
        "message": "Cache entry deleted" if deleted else "Cache entry not found",
        "deleted": deleted,
    }


@router.get("/cookies/stats")
async def cookie_stats(simulator: SimulatorDep) -> t.Any:
    return dump(simulator.cookies.get_stats())


@router.post("/cookies/clear")
async def cookies_clear(simulator: SimulatorDep, body: t.Optional[ClearCookiesBody] = None) -> t.Any:
    domain = body.domain if body else None
    cleared = simulator.cookies.clear_cookies(domain)
    return {
        "message": f"Cleared cookies for {domain}" if domain else "Cleared all cookies",
        "cleared": cleared,
    }


@router.post("/cookies/cleanup")
async def cookies_cleanup(simulator: SimulatorDep) -> t.Any:
    return {"cleaned": simulator.cookies.cleanup()}


@router.post("/cookies/validate")
async def cookies_validate(body: ValidateCookieBody, simulator: SimulatorDep) -> t.Any:
    cookie = simulator.cookies.parse_cookie(body.set_cookie)
    if cookie is None:  # pragma: no cover
        return JSONResponse(status_code=400, content={"error": "Invalid cookie", "message": "Empty Set-Cookie value"})
    return {
        "cookie": dump_cookie(cookie),
        "validation": dump(simulator.cookies.validate_cookie(cookie)),
    }


@router.get("/cookies/{domain}")
async def cookies_for_domain(domain: str, simulator: SimulatorDep) -> t.Any:
    cookies = simulator.cookies.get_cookie_details(f"https://{domain}")
    return {"domain": domain, "count": len(cookies), "cookies": dump(cookies)}


@router.post("/diagnose")
async def diagnose(body: DiagnoseBody, simulator: SimulatorDep) -> t.Any:
    try:
        return dump(await simulator.diagnose(body.url))
    except Exception as exc:
        logger.exception("Diagnosis failed")
        return JSONResponse(status_code=500, content={"error": "Diagnosis failed", "message": str(exc)})


@router.get("/test")
async def test() -> t.Any:
    return {
        "message": "HTTP Simulator API is running!",
        "version": VERSION,
        "features": [
            "Real HTTP requests",
            "Mock responses",
            "Advanced caching",
            "Cookie management",
            "HTTP/1.1 vs HTTP/2 comparison",
            "URL diagnostics",
        ],
        "endpoints": {
            "simulate": "/api/simulate-request",
            "http2": "/api/simulate-http2",
            "http1": "/api/simulate-http1",
            "cache": "/api/cache/*",
            "cookies": "/api/cookies/*",
            "diagnose": "/api/diagnose",
        },
    }


async def _periodic_cleanup(simulator: Simulator, interval: float) -> None:
    while True:
        await anyio.sleep(interval)
        cache_removed, cookies_removed = simulator.cleanup()
        if cache_removed or cookies_removed:
            logger.info(f"Periodic cleanup removed {cache_removed} cache entries and {cookies_removed} cookies.")


def create_app(
    simulator: t.Optional[Simulator] = None,
    options: t.Optional[SimulatorOptions] = None,
) -> fastapi.FastAPI:
    """
    Build the simulator web application.

    Examples:
        >>> from httpsim.fastapi import create_app
        >>> app = create_app(options=SimulatorOptions(default_delay=0))
        >>> # uvicorn.run(app)
    """
    simulator = simulator or Simulator(options)

    @asynccontextmanager
    async def lifespan(app: fastapi.FastAPI) -> t.AsyncIterator[None]:
        interval = simulator.options.cleanup_interval
        logger.info(f"Starting HTTP simulator (cleanup interval={interval}).")
        async with anyio.create_task_group() as tg:
            if interval:
                tg.start_soon(_periodic_cleanup, simulator, interval)
            yield
            tg.cancel_scope.cancel()
        await simulator.aclose()

    app = fastapi.FastAPI(title="HTTP Simulator", version=VERSION, lifespan=lifespan)
    app.state.simulator = simulator
    app.include_router(router)
    return app
