# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Service container for dependency wiring.

This module provides a ServiceContainer that builds and holds the
service instances shared by the CLI and the MCP stdio server.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console

from .clients.regional_client_factory import RegionalClientFactory
from .config import Settings, settings as get_default_settings
from .models.snapshot import ScanScope
from .services.diff_service import SnapshotComparator
from .services.inventory_service import InventoryService
from .services.report_service import ReportService
from .services.watch_service import WatchScheduler

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Wires together all services with explicit dependency injection.

    Usage::

        container = ServiceContainer()          # uses default settings
        container.initialize()

        snapshot = await container.inventory_service.acquire(container.scope())

    Or with custom settings::

        container = ServiceContainer(settings=Settings(aws_region="eu-west-1"))
        container.initialize()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
    ) -> None:
        """
        Create a ServiceContainer.

        Args:
            settings: Application settings. If None, loads from environment
                      variables / .env file via the default ``settings()`` helper.
            console: rich Console for the report service (stdout if None)
        """
        self._settings: Settings = settings or get_default_settings()
        self._console = console
        self._initialized = False

        self._client_factory: Optional[RegionalClientFactory] = None
        self._inventory_service: Optional[InventoryService] = None
        self._comparator: Optional[SnapshotComparator] = None
        self._report_service: Optional[ReportService] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Initialize all services in dependency order.

        AWS clients are created lazily per region by the client factory, so
        this never touches the network.
        """
        if self._initialized:
            logger.warning("ServiceContainer.initialize() called more than once")
            return

        s = self._settings
        logger.info("ServiceContainer: initializing services")

        self._client_factory = RegionalClientFactory(
            default_region=s.aws_region,
            profile=s.aws_profile,
            max_retries=s.aws_max_retries,
        )
        self._inventory_service = InventoryService(
            client_factory=self._client_factory,
            max_concurrency=s.max_concurrent_fetches,
            verbose=s.verbose,
        )
        self._comparator = SnapshotComparator()
        self._report_service = ReportService(console=self._console, verbose=s.verbose)

        self._initialized = True
        logger.info(
            f"ServiceContainer: all services initialized "
            f"(region={s.aws_region}, profile={s.aws_profile or 'default'})"
        )

    def shutdown(self) -> None:
        """Drop cached AWS clients."""
        if self._client_factory:
            self._client_factory.clear_clients()
        self._initialized = False
        logger.info("ServiceContainer: shutdown complete")

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    def scope(self, vpc_id: Optional[str] = None, region: Optional[str] = None) -> ScanScope:
        """Build a scan scope, defaulting to the configured region."""
        return ScanScope(region=region or self._settings.aws_region, vpc_id=vpc_id or None)

    def create_watch_scheduler(
        self,
        scope: ScanScope,
        baseline_path: Optional[str | Path] = None,
        interval_seconds: Optional[float] = None,
    ) -> WatchScheduler:
        """
        Build a WatchScheduler from the container's services.

        Args:
            scope: Region and optional VPC filter to watch
            baseline_path: Baseline file (settings default if None)
            interval_seconds: Tick interval (settings default if None)
        """
        self._require_initialized()
        s = self._settings
        return WatchScheduler(
            inventory=self._inventory_service,
            reporter=self._report_service,
            comparator=self._comparator,
            baseline_path=baseline_path or s.baseline_path,
            scope=scope,
            interval_seconds=interval_seconds or s.watch_interval_seconds,
            verbose=s.verbose,
        )

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("ServiceContainer.initialize() must be called first")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def client_factory(self) -> Optional[RegionalClientFactory]:
        return self._client_factory

    @property
    def inventory_service(self) -> Optional[InventoryService]:
        return self._inventory_service

    @property
    def comparator(self) -> Optional[SnapshotComparator]:
        return self._comparator

    @property
    def report_service(self) -> Optional[ReportService]:
        return self._report_service
