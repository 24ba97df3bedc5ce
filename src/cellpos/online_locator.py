"""Online location lookup service client."""

import logging
import requests
from typing import Callable, Dict, Any, List, Optional, Tuple

from .config import (
    ONLINE_LOCATOR_URL,
    ONLINE_LOCATOR_API_KEY,
    ONLINE_LOCATOR_TIMEOUT,
    WLAN_REUSE_INTERVAL,
    USER_AGENT,
)
from .models import CellObservation, CellTechnology, now_ms

logger = logging.getLogger(__name__)

# (built at ms since epoch, request payload)
LocationQuery = Tuple[int, Dict[str, Any]]

_RADIO_TYPES = {
    CellTechnology.GSM: "gsm",
    CellTechnology.UMTS: "wcdma",
    CellTechnology.LTE: "lte",
}


class OnlineLocatorError(Exception):
    """Raised inside the worker for any failed lookup."""


class OnlineLocator:
    """
    Asynchronous client for a geolocate-style web service.

    Queries carry the visible cells and, when allowed, the visible WLAN
    access points. The HTTP request runs in the loop's default executor so
    the event loop never blocks; the outcome is delivered back on the loop
    to exactly one of on_location_found(lat, lon, accuracy) or
    on_error(message).

    At most one query is in flight. cancel() makes the result of the
    in-flight query be discarded when it arrives; that request may still be
    running in the executor when the next one is dispatched, so every lookup
    makes its own requests.post call and no connection state is shared
    between worker threads.

    Attributes:
        url: Service endpoint; empty disables lookups
        wlan_data_allowed: Whether access points may be sent
        wlan_source: Callable returning the latest WLAN scan, or None when
            no fresh scan is available
    """

    def __init__(
        self,
        loop,
        url: str = ONLINE_LOCATOR_URL,
        api_key: str = ONLINE_LOCATOR_API_KEY,
        timeout: float = ONLINE_LOCATOR_TIMEOUT,
        wlan_source: Optional[Callable[[], Optional[List[Dict[str, Any]]]]] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.loop = loop
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.wlan_source = wlan_source
        self.clock = clock
        self.wlan_data_allowed = False

        self.on_location_found: Callable[[float, float, float], None] = lambda lat, lon, acc: None
        self.on_error: Callable[[str], None] = lambda message: None
        self.on_wlan_changed: Callable[[], None] = lambda: None

        self._generation = 0
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def set_wlan_data_allowed(self, allowed: bool):
        self.wlan_data_allowed = allowed

    def build_location_query(self, cells: List[CellObservation],
                             previous_query: Optional[LocationQuery] = None) -> LocationQuery:
        """
        Build a query from the visible cells and the previous query.

        Without a fresh WLAN scan the previous query's access points are
        re-sent while that query is younger than WLAN_REUSE_INTERVAL.
        """
        now = self.clock()
        payload: Dict[str, Any] = {
            "considerIp": False,
            "cellTowers": [
                {
                    "radioType": _RADIO_TYPES[o.cell.technology],
                    "mobileCountryCode": o.cell.mcc,
                    "mobileNetworkCode": o.cell.mnc,
                    "locationAreaCode": o.cell.location_code,
                    "cellId": o.cell.cell_id,
                    "signalStrength": o.signal_strength,
                }
                for o in cells
            ],
        }

        if self.wlan_data_allowed:
            previous_aps: List[Dict[str, Any]] = []
            if previous_query is not None:
                previous_aps = previous_query[1].get("wifiAccessPoints", [])

            scan = self.wlan_source() if self.wlan_source else None
            if scan is not None:
                access_points = [
                    {"macAddress": ap["macAddress"], "signalStrength": ap.get("signalStrength", 0)}
                    for ap in scan if ap.get("macAddress")
                ]
                if previous_query is not None and access_points != previous_aps:
                    logger.debug("WLAN access points changed since previous query")
                    self.on_wlan_changed()
            elif previous_query is not None and now - previous_query[0] < WLAN_REUSE_INTERVAL:
                access_points = previous_aps
            else:
                access_points = []

            if access_points:
                payload["wifiAccessPoints"] = access_points

        return now, payload

    def find_location(self, query: LocationQuery) -> bool:
        """
        Dispatch a query.

        Returns:
            True if a lookup is (now or already) in flight and its result will
            be delivered through the callbacks, False if nothing was sent
        """
        if not self.url:
            logger.debug("No online locator URL configured")
            return False

        payload = query[1]
        if not payload.get("cellTowers") and not payload.get("wifiAccessPoints"):
            logger.debug("Nothing to send to online locator")
            return False

        if self._in_flight:
            logger.debug("Online query already in flight, not sending another")
            return True

        self._in_flight = True
        generation = self._generation
        future = self.loop.run_in_executor(None, self._lookup, payload)
        future.add_done_callback(lambda f: self._finished(generation, f))
        return True

    def cancel(self):
        """Discard the result of any in-flight query."""
        self._generation += 1
        self._in_flight = False

    def _lookup(self, payload: Dict[str, Any]) -> Tuple[float, float, float]:
        """Blocking HTTP request, runs in the executor."""
        params = {"key": self.api_key} if self.api_key else None
        try:
            response = requests.post(
                self.url,
                json=payload,
                params=params,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise OnlineLocatorError("Online locator timeout")
        except requests.exceptions.ConnectionError:
            raise OnlineLocatorError("Online locator connection error (no internet?)")
        except requests.exceptions.RequestException as e:
            raise OnlineLocatorError(f"Online locator request failed: {e}")

        if response.status_code != 200:
            raise OnlineLocatorError(f"Online locator error {response.status_code}: {response.text[:100]}")

        return parse_response(response.json() if response.content else None)

    def _finished(self, generation: int, future):
        if generation != self._generation:
            logger.debug("Discarding result of cancelled online query")
            return
        self._in_flight = False

        if future.cancelled():
            logger.debug("Online query was cancelled before it completed")
            return

        try:
            lat, lon, accuracy = future.result()
        except OnlineLocatorError as e:
            self.on_error(str(e))
            return
        except ValueError as e:
            self.on_error(f"Invalid online locator response: {e}")
            return
        except Exception as e:
            logger.error(f"Unexpected error in online lookup: {e}")
            self.on_error(f"Unexpected error: {str(e)[:50]}")
            return
        self.on_location_found(lat, lon, accuracy)


def parse_response(data: Any) -> Tuple[float, float, float]:
    """
    Extract (lat, lon, accuracy) from a response body.

    Raises:
        OnlineLocatorError: The body holds no usable location
    """
    if not isinstance(data, dict):
        raise OnlineLocatorError("Online locator returned no data")
    if "error" in data:
        error = data["error"]
        message = error.get("message") if isinstance(error, dict) else error
        raise OnlineLocatorError(f"Online locator error: {message}")

    location = data.get("location")
    if not isinstance(location, dict):
        raise OnlineLocatorError("Online locator response has no location")
    try:
        return float(location["lat"]), float(location["lng"]), float(data["accuracy"])
    except (KeyError, TypeError, ValueError):
        raise OnlineLocatorError(f"Online locator response incomplete: {data}")
