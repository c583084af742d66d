"""
Resource descriptor construction.

The resource identifies the emitting service on every span and metric:
service name, service version and deployment environment, merged over the
SDK process defaults (telemetry.sdk.*, OTEL_RESOURCE_ATTRIBUTES, ...).

Usage:
    from puzzle_telemetry.resource import new_resource

    resource = new_resource("checkout", "1.4.2", "staging")
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from opentelemetry.sdk.resources import Resource
from opentelemetry.semconv.attributes import service_attributes

from puzzle_telemetry.errors import ResourceMergeError
from puzzle_telemetry.waiting import WaitingLogs

logger = logging.getLogger(__name__)

# Semantic conventions version the identity attributes follow
SCHEMA_URL = "https://opentelemetry.io/schemas/1.17.0"

ENVIRONMENT_ATTRIBUTE = "environment"


def identity_resource(
    service_name: str,
    version: str,
    environment: str,
    attributes: Mapping[str, Any] | None = None,
) -> Resource:
    """
    Build the service identity resource.

    Caller attributes are included but cannot override the identity keys.
    """
    merged: dict[str, Any] = dict(attributes or {})
    merged[service_attributes.SERVICE_NAME] = service_name
    merged[service_attributes.SERVICE_VERSION] = version
    merged[ENVIRONMENT_ATTRIBUTE] = environment
    return Resource(merged, schema_url=SCHEMA_URL)


def merge_resources(base: Resource, identity: Resource) -> Resource:
    """
    Merge ``identity`` over ``base``; identity attributes win on conflict.

    Raises:
        ResourceMergeError: If both resources carry different schema URLs.
            The SDK would log and silently keep ``base`` in that case.
    """
    if base.schema_url and identity.schema_url and base.schema_url != identity.schema_url:
        raise ResourceMergeError(
            f"incompatible schema URLs {base.schema_url!r} and {identity.schema_url!r}"
        )
    return base.merge(identity)


def new_resource(
    service_name: str,
    version: str,
    environment: str,
    attributes: Mapping[str, Any] | None = None,
    *,
    base: Resource | None = None,
    waiting: WaitingLogs | None = None,
) -> Resource:
    """
    Build the resource descriptor for this process. Never raises.

    Args:
        service_name: Logical service name.
        version: Service version.
        environment: Deployment tag (EXEC_ENV); may be empty.
        attributes: Extra attributes attached to all telemetry.
        base: Process defaults to merge over (``Resource.create()`` if omitted).
        waiting: Buffer receiving a warning entry if the merge fails.

    Returns:
        The merged resource. On a schema conflict the union of both attribute
        sets is returned under the identity schema URL.
    """
    if base is None:
        base = Resource.create()
    identity = identity_resource(service_name, version, environment, attributes)

    try:
        return merge_resources(base, identity)
    except ResourceMergeError as exc:
        if waiting is not None:
            waiting.append("Failed to merge default resource", error=exc)
        else:
            logger.warning("Failed to merge default resource: %s", exc)
        return Resource({**base.attributes, **identity.attributes}, schema_url=SCHEMA_URL)
