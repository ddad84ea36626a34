# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Endpoint resolution for DynamoDB, DynamoDB Streams and CloudWatch.

One pure function maps (region, optional explicit endpoint, service family)
to a concrete endpoint. Region knowledge comes from botocore's bundled
endpoint data and is loaded once.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict
from urllib.parse import urlparse

import botocore.session

from ddbcrr.errors import explain_malformed_endpoint, explain_unknown_region
from ddbcrr.exceptions import ConfigurationError


# Service families (endpoint prefixes)
DYNAMODB = "dynamodb"
DYNAMODB_STREAMS = "streams.dynamodb"
CLOUDWATCH = "monitoring"

ENDPOINT_TEMPLATE = "https://{service}.{region}.{dns_suffix}"

_PARTITION_DNS_SUFFIXES = {
    "aws": "amazonaws.com",
    "aws-cn": "amazonaws.com.cn",
    "aws-us-gov": "amazonaws.com",
    "aws-iso": "c2s.ic.gov",
    "aws-iso-b": "sc2s.sgov.gov",
    "aws-iso-e": "cloud.adc-e.uk",
    "aws-iso-f": "csp.hci.ic.gov",
    "aws-eusc": "amazonaws.eu",
}
_DEFAULT_DNS_SUFFIX = "amazonaws.com"

# Real region names; excludes pseudo-regions such as "local" and FIPS variants
_REGION_NAME = re.compile(r"^[a-z]{2,4}(-[a-z]+)+-\d+$")


@dataclass(frozen=True)
class ResolvedEndpoint:
    """A concrete endpoint URL plus the region used for request signing."""

    url: str
    region: str


@lru_cache(maxsize=None)
def known_regions() -> Dict[str, str]:
    """
    Map every region DynamoDB is offered in to its partition name.

    Pseudo-regions in the endpoint data (DynamoDB Local, FIPS aliases) are
    left out: they need an explicit endpoint.
    """
    session = botocore.session.get_session()
    regions: Dict[str, str] = {}
    for partition in session.get_available_partitions():
        for region in session.get_available_regions(DYNAMODB, partition_name=partition):
            if _REGION_NAME.match(region) and "fips" not in region:
                regions[region] = partition
    return regions


def is_known_region(region: str | None) -> bool:
    return bool(region) and region in known_regions()


def _is_well_formed(endpoint: str) -> bool:
    parsed = urlparse(endpoint)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def resolve_endpoint(
    region: str,
    endpoint: str | None = None,
    service: str = DYNAMODB,
) -> ResolvedEndpoint:
    """
    Resolve the endpoint for one service in one region.

    An explicit endpoint is returned verbatim, whatever the region. Otherwise
    the canonical endpoint is built from the region and service family.

    Args:
        region: Region name, also used as the signing region
        endpoint: Explicit endpoint URL overriding the template
        service: Service family (DYNAMODB, DYNAMODB_STREAMS or CLOUDWATCH)

    Returns:
        ResolvedEndpoint with the URL and signing region

    Raises:
        ConfigurationError: If the region is unknown or the endpoint is malformed
    """
    if endpoint:
        if not _is_well_formed(endpoint):
            raise ConfigurationError(
                explain_malformed_endpoint(endpoint),
                details={"service": service, "region": region},
            )
        return ResolvedEndpoint(url=endpoint, region=region)

    if not is_known_region(region):
        raise ConfigurationError(explain_unknown_region(region, service))

    dns_suffix = _PARTITION_DNS_SUFFIXES.get(known_regions()[region], _DEFAULT_DNS_SUFFIX)
    url = ENDPOINT_TEMPLATE.format(service=service, region=region, dns_suffix=dns_suffix)
    return ResolvedEndpoint(url=url, region=region)
