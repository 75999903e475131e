"""HTTP client for the track timing system's race sessions."""

import logging
from typing import Any

import requests

from ...core.domain import RawRaceResult
from ...core.domain.exceptions import RaceResultUnavailableError, RaceSessionNotFoundError
from ...core.ports.race_result_port import RaceResultProviderPort

logger = logging.getLogger(__name__)

# Constants
REQUEST_TIMEOUT = 30


class RaceResultsAdapter(RaceResultProviderPort):
    """Client for the timing system's race session API.

    ``GET {base_url}/race-sessions-v0/{session_id}`` returns
    ``{"success": true, "session": {"sessionName": ..., "drivers": [...]}}``
    where each driver carries ``driverName``, ``finalPosition`` and
    ``kartNumber``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: int = REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Root URL of the timing API.
            api_key: Optional bearer token.
            timeout: Request timeout in seconds.
            session: Pre-configured HTTP session (a new one by default).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "Squadron-League/1.0"})
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def __enter__(self) -> "RaceResultsAdapter":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager and close session."""
        self.close()

    def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            self.session.close()

    def _get(self, endpoint: str) -> dict[str, Any]:
        """Make a GET request to the API.

        Raises:
            RaceSessionNotFoundError: On HTTP 404.
            RaceResultUnavailableError: On any other transport or HTTP failure.
        """
        url = f"{self.base_url}/{endpoint}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Timing API unreachable: {e}")
            raise RaceResultUnavailableError(
                "Timing system is unreachable", cause=e, context={"url": url}
            ) from e

        if response.status_code == 404:
            raise RaceSessionNotFoundError("Race session not found", context={"url": url})
        try:
            response.raise_for_status()
            return response.json()  # type: ignore[no-any-return]
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Timing API error: {e}")
            raise RaceResultUnavailableError(
                "Timing system returned an invalid response",
                cause=e,
                context={"url": url, "status": response.status_code},
            ) from e

    def get_result(self, race_session_id: str) -> list[RawRaceResult]:
        """Get the per-driver outcome of a race session.

        Args:
            race_session_id: Session identifier in the timing system.

        Returns:
            Results ordered by finishing position.
        """
        data = self._get(f"race-sessions-v0/{race_session_id}")
        session = data.get("session") if data.get("success", True) else None
        if not session:
            raise RaceSessionNotFoundError(
                "Race session not found", context={"race_session_id": race_session_id}
            )

        results = []
        try:
            for driver in session.get("drivers", []):
                results.append(
                    RawRaceResult(
                        driver_name=str(driver["driverName"]).strip(),
                        final_position=int(driver["finalPosition"]),
                        kart_number=int(driver.get("kartNumber") or 0),
                    )
                )
        except (KeyError, TypeError, ValueError) as e:
            raise RaceResultUnavailableError(
                "Race session payload is malformed",
                cause=e,
                context={"race_session_id": race_session_id},
            ) from e

        logger.info(
            f"Loaded {len(results)} driver result(s) for session {race_session_id} "
            f"({session.get('sessionName', 'unnamed')})"
        )
        return sorted(results, key=lambda r: r.final_position)
