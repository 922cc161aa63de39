"""
Service for resolving free-text addresses to coordinates.

This module queries the OpenStreetMap Nominatim search API and turns the
first match into a Location.
"""
import logging
import time # For retry delays and request spacing
from typing import Any, List, Optional, Sequence

import requests
from requests.exceptions import HTTPError, RequestException

from tour_optimizer.core.exceptions import GeocodeFailure
from tour_optimizer.core.types import Location
from tour_optimizer.settings import (
    BACKOFF_FACTOR,
    GEOCODER_MIN_INTERVAL_SECONDS,
    GEOCODER_TIMEOUT_SECONDS,
    GEOCODER_URL,
    GEOCODER_USER_AGENT,
    MAX_RETRIES,
    RETRY_DELAY_SECONDS,
)

# Set up logging
logger = logging.getLogger(__name__)


class GeocodingService:
    """
    Geocoder backed by the Nominatim search endpoint.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        min_interval: Optional[float] = None
    ):
        """
        Initialize the geocoding service.

        Args:
            base_url: Search endpoint URL. Defaults to GEOCODER_URL.
            user_agent: User-Agent header sent with every request. Nominatim
                rejects requests without one.
            timeout: Request timeout in seconds.
            max_retries: Attempts per address before giving up.
            retry_delay: Delay before the first retry; later retries back off exponentially.
            min_interval: Pause between consecutive lookups in geocode_many.
        """
        self.base_url = base_url or GEOCODER_URL
        self.user_agent = user_agent or GEOCODER_USER_AGENT
        self.timeout = timeout if timeout is not None else GEOCODER_TIMEOUT_SECONDS
        self.max_retries = max(1, max_retries if max_retries is not None else MAX_RETRIES)
        self.retry_delay = retry_delay if retry_delay is not None else RETRY_DELAY_SECONDS
        self.min_interval = min_interval if min_interval is not None else GEOCODER_MIN_INTERVAL_SECONDS

    def _make_api_request(self, address: str) -> Any:
        """
        Query the search endpoint with retry logic.

        Rate limiting (429), server errors and transport failures are retried
        with exponential backoff. Other HTTP errors fail immediately.
        """
        params = {'q': address, 'format': 'jsonv2', 'limit': 1}
        headers = {'User-Agent': self.user_agent}
        last_error = None

        for attempt in range(self.max_retries):
            try:
                response = requests.get(self.base_url, params=params, headers=headers, timeout=self.timeout)
                response.raise_for_status()  # Raises HTTPError for bad responses (4XX or 5XX)
                return response.json()
            except HTTPError as http_err:
                status_code = http_err.response.status_code if http_err.response is not None else None
                if status_code == 429 or (status_code is not None and status_code >= 500):
                    last_error = f"HTTP {status_code}"
                    logger.warning(f"Geocoder returned HTTP {status_code} for {address!r} (attempt {attempt + 1})")
                else:
                    logger.error(f"HTTP error occurred: {http_err} - Status: {status_code}")
                    raise GeocodeFailure(address, f"HTTP {status_code}") from http_err
            except ValueError as json_err:
                # Checked before RequestException: requests' JSON errors subclass both
                logger.error(f"Error decoding geocoder response for {address!r}: {json_err}")
                raise GeocodeFailure(address, "malformed response") from json_err
            except RequestException as req_err:
                last_error = str(req_err)
                logger.warning(f"Request to geocoder failed for {address!r} (attempt {attempt + 1}): {req_err}")

            if attempt < self.max_retries - 1:
                sleep_time = self.retry_delay * (BACKOFF_FACTOR ** attempt)
                logger.info(f"Retrying in {sleep_time:.2f} seconds...")
                time.sleep(sleep_time)

        logger.error(f"Max retries reached for {address!r}.")
        raise GeocodeFailure(address, f"gave up after {self.max_retries} attempts ({last_error})")

    def geocode(self, address: str) -> Location:
        """
        Resolve a single address.

        Returns:
            Location carrying the coordinates of the best match and the address.

        Raises:
            GeocodeFailure: If the address is blank, has no match or the
                service cannot be reached.
        """
        query = str(address).strip() if address is not None else ""
        if not query:
            raise GeocodeFailure(address, "address is blank")

        results = self._make_api_request(query)
        if not isinstance(results, list) or not results:
            raise GeocodeFailure(address, "no matching location")

        match = results[0]
        try:
            latitude = float(match['lat'])
            longitude = float(match['lon'])
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodeFailure(address, "malformed coordinates in response") from e

        logger.debug(f"Geocoded {address!r} to ({latitude}, {longitude})")
        return Location(latitude=latitude, longitude=longitude, address=query)

    def geocode_many(self, addresses: Sequence[str]) -> List[Location]:
        """Resolve addresses in order, spacing requests by min_interval."""
        locations = []
        for index, address in enumerate(addresses):
            if index > 0 and self.min_interval > 0:
                time.sleep(self.min_interval)
            locations.append(self.geocode(address))
        return locations
