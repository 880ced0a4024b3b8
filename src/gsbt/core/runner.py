"""Run backups for every configured server.

Each server gets its own connector, staging directory and stats, so the
parallel path needs no locking; results are only combined after every
worker has finished.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from ..__logger__ import ServerLogAdapter
from ..config import Config, ConfigError, DefaultsConfig, ServerConfig
from ..connector import Connector, ConnectorConfig, new_connector
from .backup import BackupManager, BackupStats
from .progress import ProgressReporter, create_reporter

logger = logging.getLogger(__name__)

ReporterFactory = Callable[[ServerConfig, logging.LoggerAdapter], ProgressReporter]
ConnectorFactory = Callable[[ConnectorConfig], Connector]


@dataclass
class RunOptions:
    """Options for one invocation of the runner.

    Attributes:
        server: Only back up the server with this name
        sequential: Run servers one after another
        output_format: text, json or rich
        quiet: Suppress progress output
        dry_run: Only report what would be backed up
    """

    server: Optional[str] = None
    sequential: bool = False
    output_format: str = "text"
    quiet: bool = False
    dry_run: bool = False


@dataclass
class ServerResult:
    """Outcome of one server's backup."""

    name: str
    success: bool
    archive_path: Optional[Path] = None
    stats: Optional[BackupStats] = None
    error: str = ""


@dataclass
class RunSummary:
    """Aggregated outcome of a run."""

    results: list[ServerResult] = field(default_factory=list)
    duration: float = 0.0

    @property
    def successes(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failures(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def partial_failure(self) -> bool:
        return self.failures > 0 and self.successes > 0

    @property
    def all_failed(self) -> bool:
        return bool(self.results) and self.successes == 0


@dataclass
class PlannedBackup:
    """What a dry run reports for one server."""

    server: ServerConfig
    connector_config: Optional[ConnectorConfig]
    destination: Path
    error: str = ""


def describe_error(exc: BaseException) -> str:
    """Join an exception and its causes into one readable line."""
    messages = []
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current) or type(current).__name__
        if not any(text in m for m in messages):
            messages.append(text)
        current = current.__cause__
    return ": ".join(messages)


def select_servers(config: Config, name: Optional[str] = None) -> list[ServerConfig]:
    """Return the servers to act on.

    Raises:
        ConfigError: If no servers are configured or ``name`` is unknown
    """
    servers = config.servers
    if name:
        servers = [s for s in servers if s.name == name]
        if not servers:
            raise ConfigError(f"server {name!r} not found in config")
    if not servers:
        raise ConfigError("no servers configured")
    return servers


def to_connector_config(server: ServerConfig, defaults: DefaultsConfig) -> ConnectorConfig:
    """Merge server and default settings into a connector configuration.

    Raises:
        ConfigError: If the server has no remote path
    """
    conn = server.connection
    if not conn.remote_path:
        raise ConfigError("connection.remote_path is required")

    return ConnectorConfig(
        type=conn.type,
        host=conn.host,
        port=conn.port,
        username=conn.username,
        password=conn.password,
        key_file=conn.key_file,
        passive=conn.passive,
        tls=conn.tls,
        verify_host_key=conn.verify_host_key,
        api_key=conn.api_key or defaults.nitrado_api_key,
        service_id=conn.service_id,
        remote_path=conn.remote_path,
        include=conn.get_include(),
        exclude=list(conn.exclude),
        retry_attempts=defaults.retry_attempts,
        retry_delay=defaults.retry_delay,
        retry_backoff=defaults.retry_backoff,
    )


class BackupRunner:
    """Runs the backup of each selected server and tallies the outcomes."""

    def __init__(
        self,
        config: Config,
        options: Optional[RunOptions] = None,
        connector_factory: ConnectorFactory = new_connector,
        reporter_factory: Optional[ReporterFactory] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.config = config
        self.options = options or RunOptions()
        self.connector_factory = connector_factory
        self.reporter_factory = reporter_factory or self._default_reporter
        self.cancel_event = cancel_event or threading.Event()

    def _default_reporter(
        self, server: ServerConfig, log: logging.LoggerAdapter
    ) -> ProgressReporter:
        return create_reporter(self.options.output_format, self.options.quiet, log)

    def plan(self) -> list[PlannedBackup]:
        """Resolve what would be backed up, without connecting anywhere."""
        planned = []
        for server in select_servers(self.config, self.options.server):
            destination = server.get_backup_location(self.config.defaults)
            try:
                conn_config = to_connector_config(server, self.config.defaults)
                self.connector_factory(conn_config)
            except ConfigError as e:
                planned.append(PlannedBackup(server, None, destination, str(e)))
                continue
            planned.append(PlannedBackup(server, conn_config, destination))
        return planned

    def run(self) -> RunSummary:
        """Back up every selected server.

        Raises:
            ConfigError: If the server selection is invalid
        """
        servers = select_servers(self.config, self.options.server)
        summary = RunSummary()
        start = time.monotonic()

        if self.options.sequential or len(servers) == 1:
            logger.debug("Running %d server(s) sequentially", len(servers))
            for server in servers:
                summary.results.append(self.backup_server(server))
        else:
            logger.debug("Running %d servers in parallel", len(servers))
            with ThreadPoolExecutor(
                max_workers=len(servers), thread_name_prefix="gsbt"
            ) as executor:
                futures = {
                    executor.submit(self.backup_server, server): server
                    for server in servers
                }
                try:
                    for future in as_completed(futures):
                        summary.results.append(future.result())
                except KeyboardInterrupt:
                    logger.warning("Interrupted, cancelling running backups")
                    self.cancel_event.set()
                    raise

            # Report in configuration order
            order = {s.name: i for i, s in enumerate(servers)}
            summary.results.sort(key=lambda r: order.get(r.name, len(order)))

        summary.duration = time.monotonic() - start
        return summary

    def backup_server(self, server: ServerConfig) -> ServerResult:
        """Back up one server. Never raises; failures become a failed result."""
        log = ServerLogAdapter(logger, server.name)
        log.info("[yellow]starting backup[/yellow]")

        try:
            conn_config = to_connector_config(server, self.config.defaults)
        except ConfigError as e:
            log.error("[red]config error:[/red] %s", e)
            return ServerResult(server.name, False, error=f"config error: {e}")

        try:
            connector = self.connector_factory(conn_config)
        except ConfigError as e:
            log.error("[red]init error:[/red] %s", e)
            return ServerResult(server.name, False, error=f"init error: {e}")

        manager = BackupManager(
            backup_location=server.get_backup_location(self.config.defaults),
            temp_dir=self.config.defaults.temp_dir or None,
            progress=self.reporter_factory(server, log),
            cancel_event=self.cancel_event,
        )

        try:
            archive_path, stats = manager.backup(connector)
        except Exception as e:
            message = describe_error(e)
            log.error("[red]backup failed:[/red] %s", message)
            log.debug("Backup of %s failed", connector.name, exc_info=True)
            return ServerResult(server.name, False, error=message)

        log.info(
            "[green]saved[/green] %s (%d files, %.1f MB, %.1fs)",
            archive_path,
            stats.files,
            stats.bytes / 1e6,
            stats.duration,
            extra={
                "meta": {
                    "archive_path": str(archive_path),
                    "files": stats.files,
                    "bytes": stats.bytes,
                    "duration_sec": round(stats.duration, 3),
                }
            },
        )
        return ServerResult(server.name, True, archive_path=archive_path, stats=stats)


def run_backups(
    config: Config,
    options: Optional[RunOptions] = None,
    connector_factory: ConnectorFactory = new_connector,
    reporter_factory: Optional[ReporterFactory] = None,
) -> RunSummary:
    """Convenience wrapper around BackupRunner.run()."""
    runner = BackupRunner(config, options, connector_factory, reporter_factory)
    return runner.run()
