import random
import typing as tp

import httpx
import pytest

from httpsim import Simulator, SimulatorOptions, Transport

Handler = tp.Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def options() -> SimulatorOptions:
    return SimulatorOptions(default_delay=0, cleanup_interval=None)


@pytest.fixture
def simulator(options: SimulatorOptions) -> Simulator:
    return Simulator(options, random=random.Random(7))


@pytest.fixture
def make_transport(options: SimulatorOptions) -> tp.Callable[[Handler], Transport]:
    """Builds a `Transport` whose requests are answered by `handler` instead of the network."""

    def factory(handler: Handler) -> Transport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        return Transport(options, client=client)

    return factory
