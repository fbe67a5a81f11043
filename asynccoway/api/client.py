"""
Async client for the Coway IoCare cloud API.
"""

import json
import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import aiohttp

from asynccoway.config import DEFAULT_BASE_URL
from asynccoway.enums import IoCareEndpoint
from asynccoway.exceptions.api import ParseError
from asynccoway.exceptions.network import (
    ResponseError,
    NetworkConnectionError,
    NetworkTimeoutError,
)
from asynccoway.models.commands import PayloadCommand
from asynccoway.models.credentials import AccessToken
from asynccoway.models.device import Device
from asynccoway.models.response import CowayResponse
from asynccoway.utils.http_consts import ACCEPT_HEADER, USER_AGENT, CONTENT_TYPE_JSON

logger = logging.getLogger(__name__)


def _clean_params(payload: Mapping[str, Any]) -> Dict[str, str]:
    """Drop unset values and stringify the rest for use as a query string."""
    params: Dict[str, str] = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        else:
            params[key] = str(value)
    return params


class CowayClient:
    """Async client for the IoCare REST API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
    ):
        """
        Initialize the IoCare API client.

        Args:
            base_url: API root, without trailing slash
            timeout: Timeout for a single request in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        # Lazily-instantiated session
        self._session: aiohttp.ClientSession | None = None

    def _get_headers(self, access_token: Optional[AccessToken] = None) -> Dict[str, str]:
        """
        Get headers for API requests.

        Args:
            access_token: Optional token; adds a bearer Authorization header

        Returns:
            Dictionary of HTTP headers
        """
        headers = {
            "Accept": ACCEPT_HEADER,
            "User-Agent": USER_AGENT,
        }
        if access_token is not None:
            headers["Authorization"] = access_token.authorization
        return headers

    async def _get_session(self) -> aiohttp.ClientSession:
        """Return an open *aiohttp* session, creating it on first use."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the underlying *aiohttp* session (idempotent)."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ------------------------------------------------------------------
    # Unified request implementation

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: Optional[AccessToken] = None,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Tuple[int, bytes]:
        """Send one request and return ``(status_code, body_bytes)``.

        Raises:
            NetworkTimeoutError: If the request times out
            NetworkConnectionError: If the API cannot be reached
            ResponseError: If the server returns a non-200 status
        """
        method = method.upper()
        headers = self._get_headers(access_token)
        data = None
        if body is not None:
            headers["Content-Type"] = CONTENT_TYPE_JSON
            data = json.dumps(body, separators=(",", ":"))

        url = f"{self.base_url}{path}"
        session = await self._get_session()

        try:
            async with session.request(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if resp.status != 200:
                    raise ResponseError(resp.status, f"API error for {path}")
                return resp.status, await resp.read()

        except asyncio.TimeoutError as exc:
            raise NetworkTimeoutError(f"Request to {path} timed out") from exc
        except aiohttp.ClientConnectorError as exc:
            raise NetworkConnectionError(str(exc)) from exc
        except aiohttp.ClientError as exc:
            raise ResponseError(500, str(exc)) from exc

    @staticmethod
    def _parse(path: str, content: bytes) -> CowayResponse:
        try:
            decoded = content.decode("utf-8").strip()
            payload = json.loads(decoded) if decoded else {}
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ParseError(f"Failed to parse response from {path}: {exc}") from exc
        return CowayResponse.from_json(payload, root_path=path)

    # ------------------------------------------------------------------
    # Public API

    async def execute_get_payload(
        self,
        path: str,
        payload: Mapping[str, Any],
        access_token: Optional[AccessToken] = None,
    ) -> CowayResponse:
        """
        Query an IoCare resource.

        Args:
            path: Resource path starting with ``/``, already bound to a device
            payload: Query parameters; ``None`` values are omitted
            access_token: Bearer token of the account

        Returns:
            CowayResponse envelope
        """
        _, content = await self._request(
            "GET", path, access_token=access_token, params=_clean_params(payload)
        )
        return self._parse(path, content)

    async def execute_set_payloads(
        self,
        device: Device,
        commands: Sequence[PayloadCommand],
        access_token: Optional[AccessToken] = None,
    ) -> CowayResponse:
        """
        Send one or more control commands to a device in a single request.

        Args:
            device: Target device
            commands: Ordered ``funcId``/``comdVal`` pairs
            access_token: Bearer token of the account

        Returns:
            CowayResponse envelope
        """
        body = {
            "devId": device.barcode,
            "dvcBrandCd": device.dvc_brand_cd,
            "dvcTypeCd": device.dvc_type_cd,
            "prodName": device.prod_name,
            "mqttDevice": "true",
            "isMultiControl": len(commands) > 1,
            "refreshFlag": "false",
            "funcList": [command.to_func() for command in commands],
        }
        path = IoCareEndpoint.CONTROL_DEVICE.value
        logger.debug(f"Sending {len(commands)} command(s) to {device.barcode}: {body['funcList']}")
        _, content = await self._request("POST", path, access_token=access_token, body=body)
        return self._parse(path, content)

    async def execute_set_payload(
        self,
        device: Device,
        key: str,
        value: str,
        access_token: Optional[AccessToken] = None,
    ) -> CowayResponse:
        """Send a single control command."""
        return await self.execute_set_payloads(
            device, [PayloadCommand(key=key, value=value)], access_token
        )

    # ------------------------------------------------------------------
    # Account level helpers

    async def get_user_devices(
        self,
        access_token: Optional[AccessToken] = None,
        *,
        page_index: int = 0,
        page_size: int = 100,
    ) -> CowayResponse:
        """Fetch one page of the account device listing."""
        return await self.execute_get_payload(
            IoCareEndpoint.GET_USER_DEVICES.value,
            {"pageIndex": str(page_index), "pageSize": str(page_size)},
            access_token,
        )

    async def get_device_connections(
        self,
        barcodes: Sequence[str],
        access_token: Optional[AccessToken] = None,
    ) -> List[Dict[str, Any]]:
        """Return the ``devId``/``netStatus`` records of the given devices."""
        response = await self.execute_get_payload(
            IoCareEndpoint.GET_DEVICE_CONNECTIONS.value,
            {"devIds": ",".join(barcodes)},
            access_token,
        )
        if not isinstance(response.data, list):
            raise ParseError("Device connection listing is not a list")
        return response.data
