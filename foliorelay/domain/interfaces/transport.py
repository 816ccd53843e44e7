"""Interface for the HTTP transport the dispatch layer sends requests through.

The dispatcher and the GitHub client never talk to a client library
directly; the host environment injects an implementation of this port.
"""

import abc

from foliorelay.domain.models.transport import TransportRequest, TransportResponse


class Transport(abc.ABC):
    """Abstract Base Class for sending one request and returning its response."""

    @abc.abstractmethod
    async def send(self, request: TransportRequest) -> TransportResponse:
        """Sends a request and returns the completed response.

        Any HTTP status, including 4xx and 5xx, is returned as a response;
        classifying it is the caller's job.

        Args:
            request: The request to send.

        Returns:
            The status code, lower-cased headers and decoded body.

        Raises:
            NetworkFailure: If the request could not be completed at all.
        """
        pass

    async def aclose(self) -> None:
        """Releases any pooled connections. Optional for implementations."""
        return None
