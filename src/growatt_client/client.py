"""Async client for the Growatt web panel API."""

import logging
from typing import Any, Optional

import httpx

from .models import (
    MixStatus, PlantDeviceList, Session, parse_device, parse_mix_status
)


DEFAULT_SERVER_URL = "https://server.growatt.com/"
DEFAULT_TIMEOUT = 30.0
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/104.0.0.0 Safari/537.36"
)

_LOGGER = logging.getLogger(__name__)


class GrowattClient:
    """
    Async client for the Growatt web panel (server.growatt.com).

    The client starts unauthenticated. ``login`` stores a Session on the
    instance and every other call sends it along. Nothing is retried: when
    the server drops the session the next call raises NotAuthenticated and
    the caller logs in again.

    Example:
        >>> async with GrowattClient() as client:
        ...     await client.login("user", "secret")
        ...     devices = await client.device_list_by_plant("123456")
        ...     for device in devices.mix_devices:
        ...         status = await client.mix_system_status(device.serial, "123456")
        ...         print(f"{device.serial}: {status.soc}%")
    """

    def __init__(
        self,
        server_url: str = DEFAULT_SERVER_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Growatt client.

        Args:
            server_url: Base URL of the web panel
            timeout: Request timeout in seconds
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self.server_url = server_url.rstrip("/") + "/"
        self.timeout = timeout
        self._transport = transport

        self._session: Optional[Session] = None
        self._http: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self._get_http()
        return self

    async def __aexit__(self, *args):
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client and drop the session."""
        self._session = None
        if self._http:
            await self._http.aclose()
            self._http = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def user_id(self) -> Optional[str]:
        """User id reported at login, if the server sent one."""
        return self._session.user_id if self._session else None

    async def _get_http(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.server_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"User-Agent": USER_AGENT},
            )
        return self._http

    # -------------------------------------------------------------------------
    # Request helpers
    # -------------------------------------------------------------------------

    async def _post(
        self,
        path: str,
        params: Optional[dict] = None,
        data: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> httpx.Response:
        """Send one POST request, mapping transport failures."""
        http = await self._get_http()
        _LOGGER.debug("POST %s params=%s", path, params)
        try:
            resp = await http.post(path, params=params, data=data, headers=headers)
        except httpx.DecodingError as err:
            _LOGGER.warning("%s returned an undecodable body: %s", path, err)
            raise DecodeError(f"Response from {path} could not be decoded: {err}") from err
        except httpx.RequestError as err:
            _LOGGER.warning("Request to %s failed: %s", path, err)
            raise TransportError(f"Request to {path} failed: {err}") from err
        finally:
            http.cookies.clear()

        _LOGGER.debug("%s returned HTTP %s", path, resp.status_code)
        return resp

    @staticmethod
    def _json(resp: httpx.Response, operation: str) -> dict[str, Any]:
        """Decode a JSON object body."""
        try:
            data = resp.json()
        except ValueError as err:
            _LOGGER.warning("%s returned a non-JSON body", operation)
            raise DecodeError(f"{operation}: response is not valid JSON") from err

        if not isinstance(data, dict):
            raise DecodeError(
                f"{operation}: expected a JSON object, got {type(data).__name__}"
            )
        return data

    @staticmethod
    def _result_code(data: dict[str, Any], operation: str) -> int:
        """Return the panel's ``result`` field (0 means failure)."""
        result = data.get("result")
        if isinstance(result, bool) or not isinstance(result, int):
            raise DecodeError(f"{operation}: missing or invalid 'result' field")
        return result

    @staticmethod
    def _paging_field(obj: dict[str, Any], key: str, default: int) -> int:
        """Read an integer paging field sent as a number or numeric string."""
        value = obj.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            raise DecodeError(f"device list: '{key}' is not an integer: {value!r}")
        if isinstance(value, float):
            if not value.is_integer():
                raise DecodeError(f"device list: '{key}' is not an integer: {value!r}")
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value)
        raise DecodeError(f"device list: '{key}' is not an integer: {value!r}")

    @staticmethod
    def _require_param(name: str, value: str) -> None:
        if not value:
            raise GrowattParameterError(f"{name} must be a non-empty string")

    def _require_session(self) -> Session:
        if self._session is None:
            raise NotAuthenticated("Not logged in; call login() first")
        return self._session

    async def _authenticated_post(
        self,
        session: Session,
        path: str,
        operation: str,
        params: Optional[dict] = None,
        data: Optional[dict] = None,
    ) -> dict[str, Any]:
        """POST with the session attached and decode the JSON reply."""
        resp = await self._post(
            path,
            params=params,
            data=data,
            headers={"Cookie": session.cookie_header, "Referer": session.referer},
        )

        # The panel answers an expired session with a redirect to its login page
        if resp.status_code in (401, 403) or resp.is_redirect:
            _LOGGER.warning("%s: session rejected (HTTP %s)", operation, resp.status_code)
            self._session = None
            raise NotAuthenticated(f"{operation}: session expired or rejected")

        if not resp.is_success:
            raise RemoteError(resp.status_code, resp.reason_phrase)

        return self._json(resp, operation)

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def login(self, username: str, password: str) -> Session:
        """
        Log in to the web panel and store the session on the client.

        Any previous session is dropped first, so a failed or cancelled
        login leaves the client unauthenticated.

        Args:
            username: Account name
            password: Account password (not kept after the call)

        Returns:
            The new Session
        """
        self._session = None
        if not username or not password:
            raise AuthenticationError("Username and password are required")

        resp = await self._post(
            "login",
            data={"account": username, "password": password},
            headers={"Connection": "keep-alive"},
        )

        if resp.status_code in (401, 403):
            raise AuthenticationError(f"Login rejected (HTTP {resp.status_code})")
        if not resp.is_success:
            raise RemoteError(resp.status_code, resp.reason_phrase)

        data = self._json(resp, "login")
        if self._result_code(data, "login") == 0:
            raise AuthenticationError(data.get("msg") or "Login rejected")

        cookies = {}
        for header in resp.headers.get_list("set-cookie"):
            name, _, rest = header.partition("=")
            cookies[name.strip()] = rest.split(";", 1)[0].strip()

        session_id = cookies.get("JSESSIONID")
        if not session_id:
            raise AuthenticationError("Login response did not set a session cookie")

        session = Session(
            session_id=session_id,
            server_id=cookies.get("SERVERID"),
            referer=f"{self.server_url}index;jsessionid={session_id}",
            user_id=self._find_user_id(data),
        )
        self._session = session
        _LOGGER.debug("Logged in (user id %s)", session.user_id)
        return session

    @staticmethod
    def _find_user_id(data: dict[str, Any]) -> Optional[str]:
        user = data.get("user")
        if isinstance(user, dict) and user.get("id") is not None:
            return str(user["id"])
        if data.get("userId") is not None:
            return str(data["userId"])
        return None

    # -------------------------------------------------------------------------
    # Plants
    # -------------------------------------------------------------------------

    async def device_list_by_plant(self, plant_id: str, page: int = 1) -> PlantDeviceList:
        """
        List the devices attached to a plant.

        Args:
            plant_id: Plant identifier
            page: Result page (the panel pages long device lists)

        Returns:
            PlantDeviceList, empty when the plant has no devices
        """
        session = self._require_session()
        self._require_param("plant_id", plant_id)

        data = await self._authenticated_post(
            session,
            "panel/getDevicesByPlantList",
            "device list",
            params={"plantId": plant_id, "currPage": page},
        )
        result = self._result_code(data, "device list")
        if result == 0:
            raise RemoteError(result, data.get("msg"))

        obj = data.get("obj")
        if obj is None:
            obj = {}
        if not isinstance(obj, dict):
            raise DecodeError("device list: 'obj' is not an object")

        entries = obj.get("datas")
        if entries is None:
            entries = []
        if not isinstance(entries, list):
            raise DecodeError("device list: 'datas' is not a list")

        devices = []
        for entry in entries:
            if not isinstance(entry, dict):
                raise DecodeError("device list: device entry is not an object")
            try:
                devices.append(parse_device(entry))
            except ValueError as err:
                raise DecodeError(f"device list: {err}") from err

        current = self._paging_field(obj, "currPage", page)
        pages = self._paging_field(obj, "pages", 1)

        return PlantDeviceList(
            plant_id=plant_id,
            devices=tuple(devices),
            page=current,
            pages=pages,
        )

    # -------------------------------------------------------------------------
    # Mix (hybrid inverter/battery)
    # -------------------------------------------------------------------------

    async def mix_system_status(self, mix_id: str, user_id: str) -> MixStatus:
        """
        Get live status of a mix device.

        Args:
            mix_id: Serial number of the mix device
            user_id: Account/plant scope of the query, sent as ``plantId``

        Returns:
            MixStatus snapshot; readings the panel left out are None
        """
        session = self._require_session()
        self._require_param("mix_id", mix_id)
        self._require_param("user_id", user_id)

        data = await self._authenticated_post(
            session,
            "panel/mix/getMIXStatusData",
            "mix status",
            params={"plantId": user_id},
            data={"mixSn": mix_id},
        )
        if "result" in data:
            result = self._result_code(data, "mix status")
            if result == 0:
                raise RemoteError(result, data.get("msg"))

        obj = data.get("obj")
        if not isinstance(obj, dict):
            raise DecodeError("mix status: missing 'obj' payload")

        try:
            return parse_mix_status(obj)
        except ValueError as err:
            raise DecodeError(f"mix status: {err}") from err


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------

class GrowattError(Exception):
    """Base exception for Growatt client errors."""
    pass


class AuthenticationError(GrowattError):
    """Login failed or credentials were rejected."""
    pass


class NotAuthenticated(GrowattError):
    """No valid session; call login() first."""
    pass


class TransportError(GrowattError):
    """The request could not complete (timeout, DNS, TLS, connection)."""
    pass


class DecodeError(GrowattError):
    """The response body did not have the expected shape."""
    pass


class GrowattParameterError(GrowattError, ValueError):
    """Invalid argument."""
    pass


class RemoteError(GrowattError):
    """The server reported a failure; code and message are kept as sent."""

    def __init__(self, code: Any, message: Any = None):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")
