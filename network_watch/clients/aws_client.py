"""AWS client wrapper with rate limiting and backoff."""

import asyncio
import time
from typing import Any, Callable

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

THROTTLING_ERROR_CODES = frozenset(["Throttling", "ThrottlingException", "RequestLimitExceeded"])


class AWSAPIError(Exception):
    """Raised when AWS API calls fail."""

    def __init__(self, message: str, error_code: str = ""):
        self.error_code = error_code
        super().__init__(message)


class AWSClient:
    """
    Wrapper around the EC2 and IAM boto3 clients with rate limiting and
    exponential backoff.

    Credentials come from the boto3 default chain, optionally narrowed to a
    named profile. Every boto3 call runs in the default executor so the
    event loop is never blocked.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        profile: str | None = None,
        max_retries: int = 5,
    ):
        """
        Initialize AWS clients.

        Args:
            region: AWS region to use for regional services
            profile: Optional shared-config profile name
            max_retries: Attempts per call when throttled
        """
        config = Config(
            region_name=region,
            retries={
                'max_attempts': 3,
                'mode': 'adaptive'
            }
        )

        try:
            session = boto3.Session(profile_name=profile, region_name=region)
            self.ec2 = session.client('ec2', config=config)
            self.iam = session.client('iam', config=config)
        except BotoCoreError as e:
            raise AWSAPIError(f"AWS client setup failed: {e}", type(e).__name__) from e
        self.region = region
        self.profile = profile

        self._max_retries = max_retries
        self._base_delay = 1.0
        self._last_call_time: dict[str, float] = {}
        self._min_call_interval = 0.1  # 100ms between calls to same service

    async def _rate_limit(self, service_name: str) -> None:
        """
        Implement basic rate limiting between calls to the same service.

        Args:
            service_name: Name of the AWS service
        """
        if service_name in self._last_call_time:
            elapsed = time.time() - self._last_call_time[service_name]
            if elapsed < self._min_call_interval:
                await asyncio.sleep(self._min_call_interval - elapsed)

        self._last_call_time[service_name] = time.time()

    async def _call_with_backoff(
        self,
        service_name: str,
        func: Callable,
        *args,
        **kwargs
    ) -> Any:
        """
        Call AWS API with exponential backoff on rate limit errors.

        Args:
            service_name: Name of the AWS service
            func: Boto3 client method to call
            *args: Positional arguments for the method
            **kwargs: Keyword arguments for the method

        Returns:
            Response from AWS API

        Raises:
            AWSAPIError: If the API call fails after retries
        """
        await self._rate_limit(service_name)

        for attempt in range(self._max_retries):
            try:
                loop = asyncio.get_event_loop()
                return await loop.run_in_executor(
                    None,
                    lambda: func(*args, **kwargs)
                )

            except ClientError as e:
                error_code = e.response.get('Error', {}).get('Code', '')

                if error_code in THROTTLING_ERROR_CODES:
                    if attempt < self._max_retries - 1:
                        delay = self._base_delay * (2 ** attempt)
                        await asyncio.sleep(delay)
                        continue

                raise AWSAPIError(f"AWS API error: {error_code} - {str(e)}", error_code) from e

            except BotoCoreError as e:
                raise AWSAPIError(f"Boto3 error: {str(e)}") from e

        raise AWSAPIError(f"Max retries exceeded for {service_name}")

    async def _paginate(
        self,
        service_name: str,
        client: Any,
        operation: str,
        result_key: str,
        **kwargs
    ) -> list[dict[str, Any]]:
        """
        Run a paginated operation to completion and return the merged result list.

        Args:
            service_name: Name of the AWS service (for rate limiting)
            client: boto3 client owning the operation
            operation: Paginator name, e.g. "describe_vpcs"
            result_key: Response key holding the items, e.g. "Vpcs"
            **kwargs: Operation parameters

        Returns:
            All items across pages
        """
        def collect() -> dict[str, Any]:
            return client.get_paginator(operation).paginate(**kwargs).build_full_result()

        response = await self._call_with_backoff(service_name, collect)
        return response.get(result_key, [])

    @staticmethod
    def extract_tags(tag_list: list[dict[str, str]] | None) -> dict[str, str]:
        """
        Convert AWS tag list format to dictionary.

        Args:
            tag_list: List of tags in AWS format [{"Key": "...", "Value": "..."}]

        Returns:
            Dictionary of tag key-value pairs
        """
        if not tag_list:
            return {}

        result = {}
        for tag in tag_list:
            key = tag.get("Key")
            value = tag.get("Value")
            if key and value is not None:
                result[key] = value

        return result

    # ------------------------------------------------------------------
    # EC2
    # ------------------------------------------------------------------

    async def describe_vpcs(self, vpc_id: str | None = None) -> list[dict[str, Any]]:
        """Fetch all VPCs, or only the given one."""
        kwargs: dict[str, Any] = {"VpcIds": [vpc_id]} if vpc_id else {}
        return await self._paginate("ec2", self.ec2, "describe_vpcs", "Vpcs", **kwargs)

    async def describe_subnets(self, vpc_ids: list[str]) -> list[dict[str, Any]]:
        """Fetch subnets belonging to the given VPCs."""
        return await self._paginate(
            "ec2", self.ec2, "describe_subnets", "Subnets",
            Filters=[{"Name": "vpc-id", "Values": vpc_ids}],
        )

    async def describe_vpc_peering_connections(self) -> list[dict[str, Any]]:
        """Fetch all VPC peering connections in the region."""
        return await self._paginate(
            "ec2", self.ec2, "describe_vpc_peering_connections", "VpcPeeringConnections"
        )

    async def describe_transit_gateways(self) -> list[dict[str, Any]]:
        """Fetch all transit gateways in the region."""
        return await self._paginate(
            "ec2", self.ec2, "describe_transit_gateways", "TransitGateways"
        )

    async def describe_transit_gateway_attachments(
        self, transit_gateway_id: str
    ) -> list[dict[str, Any]]:
        """Fetch the attachments of one transit gateway."""
        return await self._paginate(
            "ec2", self.ec2, "describe_transit_gateway_attachments", "TransitGatewayAttachments",
            Filters=[{"Name": "transit-gateway-id", "Values": [transit_gateway_id]}],
        )

    async def describe_internet_gateways(self) -> list[dict[str, Any]]:
        """Fetch all internet gateways in the region."""
        return await self._paginate(
            "ec2", self.ec2, "describe_internet_gateways", "InternetGateways"
        )

    async def describe_nat_gateways(self) -> list[dict[str, Any]]:
        """Fetch all NAT gateways in the region."""
        return await self._paginate("ec2", self.ec2, "describe_nat_gateways", "NatGateways")

    async def describe_route_tables(self, vpc_ids: list[str]) -> list[dict[str, Any]]:
        """Fetch route tables belonging to the given VPCs."""
        return await self._paginate(
            "ec2", self.ec2, "describe_route_tables", "RouteTables",
            Filters=[{"Name": "vpc-id", "Values": vpc_ids}],
        )

    async def describe_security_groups(self, vpc_ids: list[str]) -> list[dict[str, Any]]:
        """Fetch security groups belonging to the given VPCs."""
        return await self._paginate(
            "ec2", self.ec2, "describe_security_groups", "SecurityGroups",
            Filters=[{"Name": "vpc-id", "Values": vpc_ids}],
        )

    async def describe_network_acls(self, vpc_ids: list[str]) -> list[dict[str, Any]]:
        """Fetch network ACLs belonging to the given VPCs."""
        return await self._paginate(
            "ec2", self.ec2, "describe_network_acls", "NetworkAcls",
            Filters=[{"Name": "vpc-id", "Values": vpc_ids}],
        )

    # ------------------------------------------------------------------
    # IAM
    # ------------------------------------------------------------------

    async def list_roles(self) -> list[dict[str, Any]]:
        """Fetch all IAM roles in the account."""
        return await self._paginate("iam", self.iam, "list_roles", "Roles")

    async def list_attached_role_policies(self, role_name: str) -> list[dict[str, Any]]:
        """Fetch the managed policies attached to a role."""
        return await self._paginate(
            "iam", self.iam, "list_attached_role_policies", "AttachedPolicies",
            RoleName=role_name,
        )

    async def get_policy(self, policy_arn: str) -> dict[str, Any]:
        """Fetch the metadata of a managed policy."""
        response = await self._call_with_backoff(
            "iam", self.iam.get_policy, PolicyArn=policy_arn
        )
        return response.get("Policy", {})

    async def get_policy_version(self, policy_arn: str, version_id: str) -> dict[str, Any]:
        """Fetch one version of a managed policy, including its document."""
        response = await self._call_with_backoff(
            "iam", self.iam.get_policy_version, PolicyArn=policy_arn, VersionId=version_id
        )
        return response.get("PolicyVersion", {})

    async def list_role_policies(self, role_name: str) -> list[str]:
        """Fetch the names of a role's inline policies."""
        return await self._paginate(
            "iam", self.iam, "list_role_policies", "PolicyNames", RoleName=role_name
        )

    async def get_role_policy(self, role_name: str, policy_name: str) -> dict[str, Any]:
        """Fetch one inline policy of a role."""
        return await self._call_with_backoff(
            "iam", self.iam.get_role_policy, RoleName=role_name, PolicyName=policy_name
        )
