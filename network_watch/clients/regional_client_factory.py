# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Factory for creating and caching regional AWS clients."""

import logging

from .aws_client import AWSClient

logger = logging.getLogger(__name__)


class RegionalClientFactory:
    """
    Creates one AWSClient per region and reuses it for later scans.

    Every client is built with the same profile and retry budget, so a
    watch loop that re-scans the same region every tick keeps a single
    set of boto3 clients.
    """

    def __init__(
        self,
        default_region: str = "us-east-1",
        profile: str | None = None,
        max_retries: int = 5,
    ):
        """
        Initialize with default region and shared client options.

        Args:
            default_region: Region used when none is requested
            profile: Optional shared-config profile applied to all clients
            max_retries: Throttling retry budget applied to all clients
        """
        self._default_region = default_region
        self._profile = profile
        self._max_retries = max_retries
        self._clients: dict[str, AWSClient] = {}

        logger.debug(
            f"RegionalClientFactory initialized with default_region={default_region}"
        )

    @property
    def default_region(self) -> str:
        """Get the default region."""
        return self._default_region

    @property
    def cached_regions(self) -> list[str]:
        """Get list of regions with cached clients."""
        return list(self._clients.keys())

    def get_client(self, region: str | None = None) -> AWSClient:
        """
        Get or create an AWS client for the specified region.

        Calling this repeatedly with the same region returns the same
        AWSClient instance.

        Args:
            region: AWS region code; the default region when omitted

        Returns:
            AWSClient configured for the region
        """
        region = region or self._default_region
        if region in self._clients:
            logger.debug(f"Reusing cached client for region {region}")
            return self._clients[region]

        logger.info(f"Creating new AWS client for region {region}")
        client = AWSClient(region=region, profile=self._profile, max_retries=self._max_retries)
        self._clients[region] = client
        return client

    def clear_clients(self) -> None:
        """Drop all cached clients."""
        client_count = len(self._clients)
        self._clients.clear()
        logger.info(f"Cleared {client_count} cached regional clients")
