# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for the replication worker.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_unknown_region(region: str | None, service: str) -> str:
    """
    Explain that a region name cannot be mapped to an endpoint.
    """

    return (
        f"Unknown region {region!r} for service {service!r}. "
        "Pass a valid AWS region name (e.g. 'us-east-1') or an explicit endpoint URL."
    )


def explain_malformed_endpoint(endpoint: str) -> str:
    """
    Explain that an explicit endpoint is not a usable URL.
    """

    return (
        f"Malformed endpoint {endpoint!r}. "
        "Endpoints must be absolute http:// or https:// URLs, e.g. 'http://localhost:8000'."
    )


def explain_no_stream_found(table: str) -> str:
    """
    Explain that the source table has no stream attached.
    """

    return (
        f"No stream found for source table {table!r}. "
        "Enable DynamoDB Streams on the table with StreamViewType NEW_AND_OLD_IMAGES."
    )


def explain_stream_not_ready(table: str, view_type: str | None, status: str | None) -> str:
    """
    Explain that the attached stream cannot be used for replication.
    """

    return (
        f"Stream not ready for source table {table!r} "
        f"(view type {view_type!r}, status {status!r}). "
        "Replication needs an enabled stream with StreamViewType NEW_AND_OLD_IMAGES."
    )


def explain_unknown_pipeline(name: str, available: list[str]) -> str:
    """
    Explain that a pipeline name is not registered.
    """

    return (
        f"Unknown pipeline {name!r}. "
        f"Registered pipelines: {', '.join(sorted(available)) or '(none)'}."
    )


def explain_pipeline_configuration_mismatch(component: str, expected: str, actual: object) -> str:
    """
    Explain that a pipeline received a configuration of the wrong type.
    """

    return (
        f"{component} needs a {expected} argument, "
        f"got {type(actual).__name__}."
    )


def explain_missing_credentials() -> str:
    """
    Explain that the default credential chain found nothing.
    """

    return (
        "No AWS credentials found in the default provider chain. "
        "Set AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY, configure a profile, "
        "or pass explicit access keys for this side."
    )


def explain_missing_env(name: str) -> str:
    """
    Explain that a required environment variable is missing.
    """

    return f"{name} is not set. It is required to configure replication from the environment."


def explain_invalid_int_env(name: str, value: str | None) -> str:
    """
    Explain that an integer environment variable is invalid.
    """

    return f"Invalid {name} value: {value!r}. It must be a positive integer."


def explain_invalid_checkpoint_policy(value: str | None) -> str:
    """
    Explain that the checkpoint policy value is invalid.
    """

    return (
        f"Invalid checkpoint policy: {value!r}. "
        "Expected 'best_effort' or 'single_writer'."
    )
