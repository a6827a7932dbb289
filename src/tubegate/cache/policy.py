"""Per-content-class cache policy."""

from __future__ import annotations

from dataclasses import dataclass

from tubegate.shared.enums import ContentClass

# Used when a TTL cannot be resolved from an override or a class default.
FALLBACK_TTL = 60 * 60.0

# Classes resolved from keys whose namespace is not a known class.
DEFAULT_CLASS = ContentClass.VIDEO_METADATA

_NAMESPACE_SEPARATOR = ":"


@dataclass(frozen=True)
class ClassPolicy:
    """TTL (seconds, ``None`` = permanent) and durable-tier flag of a class."""

    ttl: float | None
    durable: bool

    @property
    def permanent(self) -> bool:
        return self.ttl is None


POLICIES: dict[ContentClass, ClassPolicy] = {
    ContentClass.SEARCH: ClassPolicy(ttl=5 * 60.0, durable=False),
    ContentClass.VIDEO_METADATA: ClassPolicy(ttl=60 * 60.0, durable=True),
    ContentClass.CHANNEL_METADATA: ClassPolicy(ttl=24 * 60 * 60.0, durable=True),
    ContentClass.LYRICS: ClassPolicy(ttl=None, durable=True),
}

_BY_NAMESPACE: dict[str, ContentClass] = {cls.value: cls for cls in ContentClass}


def policy_for(content_class: ContentClass) -> ClassPolicy:
    """Return the policy of ``content_class``; depends on nothing else."""
    return POLICIES[content_class]


def make_key(content_class: ContentClass, item_id: str) -> str:
    """Build a namespaced key ``"<class>:<id>"``."""
    return f"{content_class.value}{_NAMESPACE_SEPARATOR}{item_id}"


def class_of(key: str) -> ContentClass:
    """Resolve the content class of ``key`` from its namespace.

    The namespace is everything before the first ``:``. Keys without a
    namespace, or with one that names no known class, resolve to
    ``DEFAULT_CLASS``.
    """
    namespace, sep, _rest = key.partition(_NAMESPACE_SEPARATOR)
    if not sep:
        return DEFAULT_CLASS
    return _BY_NAMESPACE.get(namespace, DEFAULT_CLASS)
