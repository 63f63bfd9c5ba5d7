"""AWS Network Watch: network topology snapshots and drift detection."""

__version__ = "0.1.0"
