# pyright: standard

"""gsbt: gsbt/connector/nitrado.py
Nitrado connector: trades an API key for FTP credentials, then delegates
every transfer to an FTPConnector.
"""

import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional

import requests

from ..config import ConfigError
from .common import (
    ConnectError,
    Connector,
    ConnectorConfig,
    NotConnectedError,
    RateLimitedError,
    RemoteFile,
)
from .ftp import FTPConnector

logger = logging.getLogger(__name__)

NITRADO_API_BASE = "https://api.nitrado.net"
API_TIMEOUT = 30


@dataclass
class FTPCredentials:
    """Transient FTP credentials handed out by the Nitrado API."""

    hostname: str
    port: int
    username: str
    password: str


class NitradoConnector(Connector):
    """Connector for Nitrado gameservers."""

    scheme = "nitrado"

    def __init__(
        self,
        config: ConnectorConfig,
        api_base: str = NITRADO_API_BASE,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(config)
        self.api_base = api_base.rstrip("/")
        self._owns_session = session is None
        self.session = session or requests.Session()
        self._ftp: Optional[FTPConnector] = None

    @property
    def name(self) -> str:
        return f"nitrado://{self.config.service_id}"

    @property
    def is_connected(self) -> bool:
        return self._ftp is not None and self._ftp.is_connected

    def connect(self) -> None:
        """Fetch FTP credentials and connect the FTP delegate."""
        if self._ftp is not None:
            return

        if not self.config.api_key:
            raise ConfigError("api_key is required for nitrado connector")
        if not self.config.service_id:
            raise ConfigError("service_id is required for nitrado connector")

        try:
            creds = self.fetch_ftp_credentials()
        except RateLimitedError as e:
            raise RateLimitedError(
                f"failed to get Nitrado FTP credentials: {e}",
                retry_after=e.retry_after,
            ) from e
        except ConnectError as e:
            raise ConnectError(f"failed to get Nitrado FTP credentials: {e}") from e

        logger.debug(
            "%s resolved to ftp://%s:%s", self.name, creds.hostname, creds.port
        )
        ftp_config = ConnectorConfig(
            type="ftp",
            host=creds.hostname,
            port=creds.port,
            username=creds.username,
            password=creds.password,
            passive=True,
            remote_path=self.config.remote_path,
            include=self.config.include,
            exclude=self.config.exclude,
            retry_attempts=self.config.retry_attempts,
            retry_delay=self.config.retry_delay,
            retry_backoff=self.config.retry_backoff,
        )
        ftp = FTPConnector(ftp_config)
        ftp.connect()
        self._ftp = ftp

    def fetch_ftp_credentials(self) -> FTPCredentials:
        """Ask the Nitrado API for the gameserver's FTP credentials.

        Raises:
            RateLimitedError: on HTTP 429, with the Retry-After hint
            ConnectError: on any other failure
        """
        url = f"{self.api_base}/services/{self.config.service_id}/gameservers"
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Accept": "application/json",
        }

        try:
            response = self.session.get(url, headers=headers, timeout=API_TIMEOUT)
        except requests.RequestException as e:
            raise ConnectError(f"Nitrado API request failed: {e}") from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "")
            raise RateLimitedError(
                f"rate limited by Nitrado API (retry after: {retry_after})",
                retry_after=retry_after,
            )

        if response.status_code != 200:
            raise ConnectError(
                f"Nitrado API error (status {response.status_code}): {response.text}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ConnectError(f"failed to parse Nitrado response: {e}") from e

        if not isinstance(payload, dict) or payload.get("status") != "success":
            message = payload.get("message", "") if isinstance(payload, dict) else ""
            raise ConnectError(f"Nitrado API returned error: {message}")

        data = payload.get("data") or {}
        ftp = (data.get("ftp") or {}) if isinstance(data, dict) else None
        if not isinstance(ftp, dict):
            raise ConnectError("failed to parse Nitrado response: no FTP credentials")
        try:
            return FTPCredentials(
                hostname=ftp.get("hostname", ""),
                port=int(ftp.get("port") or 0),
                username=ftp.get("username", ""),
                password=ftp.get("password", ""),
            )
        except (TypeError, ValueError) as e:
            raise ConnectError(f"failed to parse Nitrado response: {e}") from e

    def _delegate(self) -> FTPConnector:
        if self._ftp is None:
            raise NotConnectedError()
        return self._ftp

    def list_files(self) -> list[RemoteFile]:
        return self._delegate().list_files()

    def download(self, remote_path: str, sink: BinaryIO) -> None:
        self._delegate().download(remote_path, sink)

    def upload(self, source: BinaryIO, remote_path: str) -> None:
        self._delegate().upload(source, remote_path)

    def close(self) -> None:
        if self._ftp is not None:
            ftp, self._ftp = self._ftp, None
            ftp.close()
        if self._owns_session:
            self.session.close()
