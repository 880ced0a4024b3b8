# pyright: standard

"""gsbt: gsbt/connector/__init__.py."""

from ..__logger__ import logger
from ..config import ConfigError

from .common import (
    ConnectError,
    Connector,
    ConnectorConfig,
    ConnectorError,
    DownloadError,
    ListError,
    NotConnectedError,
    RateLimitedError,
    RemoteFile,
    UploadError,
)
from .ftp import FTPConnector
from .matcher import matches_patterns
from .nitrado import NitradoConnector
from .sftp import SFTPConnector

CONNECTOR_CLASSES: dict[str, type[Connector]] = {
    "ftp": FTPConnector,
    "sftp": SFTPConnector,
    "nitrado": NitradoConnector,
}


def new_connector(config: ConnectorConfig) -> Connector:
    """
    Instantiate the connector matching ``config.type``.

    Args:
        config (ConnectorConfig): Fully resolved connector settings.

    Returns:
        Connector: An unconnected instance of the matching connector.

    Raises:
        ConfigError: If the type is not supported.
    """
    connector_class = CONNECTOR_CLASSES.get(config.type)
    if connector_class is None:
        raise ConfigError(f"unsupported connector type: {config.type!r}")

    connector = connector_class(config)
    logger.debug("Connector created: %r", connector)
    return connector


__all__ = [
    "CONNECTOR_CLASSES",
    "ConnectError",
    "Connector",
    "ConnectorConfig",
    "ConnectorError",
    "DownloadError",
    "FTPConnector",
    "ListError",
    "NitradoConnector",
    "NotConnectedError",
    "RateLimitedError",
    "RemoteFile",
    "SFTPConnector",
    "UploadError",
    "matches_patterns",
    "new_connector",
]
