"""
Allow running AWS Network Watch as a Python module.

Usage:
    python -m network_watch scan --region us-east-1
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
