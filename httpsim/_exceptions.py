from __future__ import annotations

__all__ = ("SimulatorError", "InvalidURLError", "PacketLossError", "TransportError")


class SimulatorError(Exception): ...


class InvalidURLError(SimulatorError): ...


class PacketLossError(SimulatorError):
    def __init__(self, packet_loss: float) -> None:
        super().__init__(f"Request failed due to {packet_loss:g}% packet loss simulation")
        self.packet_loss = packet_loss


class TransportError(SimulatorError):
    def __init__(
        self,
        message: str,
        error_type: str = "Unknown Error",
        status_code: int = 0,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.status_code = status_code
        self.error_code = error_code
