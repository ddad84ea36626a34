# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Pipelines - Registry mapping symbolic pipeline names to constructors.
"""

from typing import Callable, Dict, List

from ddbcrr.errors import explain_unknown_pipeline
from ddbcrr.exceptions import ConfigurationError
from ddbcrr.pipelines.base import (
    Buffer,
    ConnectorConfiguration,
    Emitter,
    Filter,
    Pipeline,
    StreamRecord,
    StreamsConnectorConfiguration,
    Transformer,
)
from ddbcrr.pipelines.master_to_replicas import MasterToReplicasPipeline

PipelineConstructor = Callable[[], Pipeline]

_REGISTRY: Dict[str, PipelineConstructor] = {}


def register_pipeline(name: str, constructor: PipelineConstructor) -> None:
    """
    Register a pipeline constructor under a symbolic name.

    Args:
        name: Name used in configuration (e.g. 'master_to_replicas')
        constructor: Zero-argument callable returning a Pipeline

    Raises:
        ConfigurationError: If the name is already taken
    """
    if name in _REGISTRY:
        raise ConfigurationError(f"Pipeline already registered: {name}")
    _REGISTRY[name] = constructor


def unregister_pipeline(name: str) -> None:
    _REGISTRY.pop(name, None)


def available_pipelines() -> List[str]:
    return sorted(_REGISTRY)


def get_pipeline(name: str) -> Pipeline:
    """
    Construct the pipeline registered under name.

    Raises:
        ConfigurationError: If no pipeline is registered under name
    """
    try:
        constructor = _REGISTRY[name]
    except KeyError:
        raise ConfigurationError(explain_unknown_pipeline(name, available_pipelines())) from None
    return constructor()


register_pipeline("master_to_replicas", MasterToReplicasPipeline)

__all__ = [
    "Buffer",
    "ConnectorConfiguration",
    "Emitter",
    "Filter",
    "Pipeline",
    "PipelineConstructor",
    "StreamRecord",
    "StreamsConnectorConfiguration",
    "Transformer",
    "MasterToReplicasPipeline",
    "available_pipelines",
    "get_pipeline",
    "register_pipeline",
    "unregister_pipeline",
]
