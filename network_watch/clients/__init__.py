"""AWS client wrapper module."""

from .aws_client import AWSClient, AWSAPIError
from .regional_client_factory import RegionalClientFactory

__all__ = ["AWSClient", "AWSAPIError", "RegionalClientFactory"]
