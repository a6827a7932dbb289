"""Construction of the upstream client from a ``module:callable`` path."""

from __future__ import annotations

import importlib
import inspect
import logging

from tubegate.shared.exceptions import UpstreamUnavailableError
from tubegate.upstream.interfaces import UpstreamClient

logger = logging.getLogger(__name__)


async def load_upstream(factory_path: str) -> UpstreamClient | None:
    """Import and call the configured upstream factory.

    Args:
        factory_path: ``"package.module:callable"``. Empty means no upstream.

    Returns:
        The client instance, or ``None`` when no factory is configured.

    Raises:
        UpstreamUnavailableError: If the path is malformed, the import fails
            or the factory raises.
    """
    if not factory_path:
        logger.warning("no upstream factory configured; API routes will answer 503")
        return None

    module_name, sep, attr = factory_path.partition(":")
    if not sep or not module_name or not attr:
        raise UpstreamUnavailableError(f"invalid upstream factory path: {factory_path!r}")

    try:
        factory = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as exc:
        raise UpstreamUnavailableError(f"cannot import upstream factory {factory_path}: {exc}") from exc

    try:
        client = factory()
        if inspect.isawaitable(client):
            client = await client
    except Exception as exc:
        raise UpstreamUnavailableError(f"upstream factory {factory_path} failed: {exc}") from exc

    logger.info("upstream client loaded from %s", factory_path)
    return client
