# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DynamoDB Cross-Region Replication - Replicate a table's stream to another region.

Attaches to the source table's DynamoDB stream and fans every batch of change
records out to one or more pluggable pipelines, which write the changes to a
destination table in another region. Package name: ddbcrr.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from ddbcrr.builder import create_config

# Bootstrap
from ddbcrr.core import create_worker, run_replication

# Environment-based configuration
from ddbcrr.env import create_config_from_env

__all__ = [
    # Version
    "__version__",
    # Configuration creation
    "create_config",
    "create_config_from_env",
    # Bootstrap
    "create_worker",
    "run_replication",
]
