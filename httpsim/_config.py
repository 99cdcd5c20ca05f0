from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

__all__ = ("SimulatorOptions",)


def _default_headers() -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Server": "HTTP-Simulator/1.0",
        "X-Powered-By": "httpsim",
    }


@dataclass
class SimulatorOptions:
    """
    Configuration options for the simulator.

    Attributes:
    ----------
    default_delay : float
        Simulated network delay in milliseconds used when a request does not
        name one. Requested delays are clamped into [min_delay, max_delay].

        Examples:
        --------
        >>> options = SimulatorOptions(default_delay=0)
        >>> options.clamp_delay(None)
        0
        >>> SimulatorOptions().clamp_delay(99_999)
        5000

    max_packet_loss : float
        Upper bound, in percent, for the simulated packet loss.

    default_max_age : int
        Freshness lifetime in seconds for cached responses without a usable
        max-age directive.

    session_cookie_lifetime : int
        Lifetime in seconds given to cookies without Max-Age or Expires.

    block_private_hosts : bool
        Refuse real requests to localhost and private network addresses.

    cleanup_interval : float | None
        Seconds between background sweeps of expired cache entries and
        cookies while the web application runs. None disables the sweep.
    """

    default_delay: float = 100
    min_delay: float = 0
    max_delay: float = 5000

    max_packet_loss: float = 100

    real_request_timeout: float = 10.0
    """Timeout in seconds for a single real request."""

    concurrent_request_timeout: float = 5.0
    """Timeout in seconds for each real request of a concurrent batch."""

    reachability_timeout: float = 5.0

    max_redirects: int = 5
    max_content_length: int = 5 * 1024 * 1024
    user_agent: str = "HTTP-Simulator/1.0 (Educational Tool)"
    default_headers: Dict[str, str] = field(default_factory=_default_headers)

    default_max_age: int = 3600
    revalidation_threshold: float = 0.8
    session_cookie_lifetime: int = 24 * 60 * 60

    block_private_hosts: bool = True
    cleanup_interval: Optional[float] = 60.0

    def clamp_delay(self, delay: Optional[float]) -> float:
        if delay is None:
            delay = self.default_delay
        return max(self.min_delay, min(delay, self.max_delay))

    def clamp_packet_loss(self, packet_loss: Optional[float]) -> float:
        return max(0, min(packet_loss or 0, self.max_packet_loss))
