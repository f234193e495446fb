"""
Capability Registry

Process-wide cache of model capability records keyed by
``provider::endpoint::model``. Every write carries a CapabilitySource and a
write is dropped when the stored record came from a strictly higher
priority source. User overrides live in a separate map and are layered on
top at read time, so they always win.

The bundled YAML seed is stored under the empty endpoint; endpoint specific
lookups fall back to it.
"""
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

import yaml

from ..config import settings
from .model_capability_rules import infer_capabilities_from_name
from .types import (
    CapabilitySource,
    ContentOrdering,
    InputModality,
    ModelCapabilities,
    OutputModality,
    ProbeResult,
)

logger = logging.getLogger(__name__)

STATIC_CAPABILITIES_FILE = Path(__file__).resolve().parent.parent / "data" / "static_capabilities.yaml"

# Fields owned by the registry itself; never taken from a caller's patch.
_RECORD_FIELDS = {"model_id", "provider", "source", "updated_at"}

CapabilityPatch = Union[Mapping[str, Any], ModelCapabilities]


def default_capabilities() -> Dict[str, Any]:
    return {
        "input_modalities": [InputModality.TEXT],
        "output_modalities": [OutputModality.TEXT],
        "content_ordering": ContentOrdering.ANY,
        "supports_streaming": True,
        "supports_system_prompt": True,
    }


def provider_id(provider: Any) -> str:
    """Accept ProviderType members or plain strings."""
    return str(getattr(provider, "value", provider) or "").strip().lower()


def build_key(provider: Any, endpoint: Optional[str], model_id: str) -> str:
    return f"{provider_id(provider)}::{endpoint or ''}::{model_id}"


def _patch_to_dict(capabilities: CapabilityPatch) -> Dict[str, Any]:
    if isinstance(capabilities, ModelCapabilities):
        data = capabilities.model_dump(exclude_unset=True)
    else:
        data = dict(capabilities or {})
    return {key: value for key, value in data.items() if key not in _RECORD_FIELDS}


def load_static_capabilities(path: Optional[Union[str, Path]] = None) -> List[ModelCapabilities]:
    """
    Load the curated capability seed.

    The file maps provider ids to ``defaults`` (shared fields) and ``models``
    (one entry per model, ``model_id`` required).

    Args:
        path: YAML file to read; defaults to settings or the bundled seed

    Returns:
        Capability records stamped with the static_registry source
    """
    seed_path = Path(path or settings.static_capabilities_path or STATIC_CAPABILITIES_FILE)
    with open(seed_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    records: List[ModelCapabilities] = []
    for provider, section in data.items():
        section = section or {}
        shared = section.get("defaults") or {}
        for entry in section.get("models") or []:
            fields = {**default_capabilities(), **shared, **entry}
            fields["provider"] = provider_id(provider)
            fields["source"] = CapabilitySource.STATIC_REGISTRY
            records.append(ModelCapabilities(**fields))
    logger.debug(f"Loaded {len(records)} static capability records from {seed_path}")
    return records


class CapabilityRegistry:
    """
    Thread-safe capability cache with source-priority conflict resolution.

    Lookups never touch the network; probes feed results back through
    ``set`` / ``record_probe_result``.
    """

    def __init__(
        self,
        static_entries: Optional[Iterable[ModelCapabilities]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            static_entries: Seed records; the bundled YAML is loaded when None
            clock: Timestamp source for ``updated_at``
        """
        self._lock = threading.RLock()
        self._clock = clock
        self._cache: Dict[str, ModelCapabilities] = {}
        self._overrides: Dict[str, Dict[str, Any]] = {}
        self._static_entries = list(static_entries) if static_entries is not None else load_static_capabilities()
        self.seed_static_registry()

    def seed_static_registry(self) -> None:
        """(Re)load the static seed under the empty endpoint."""
        with self._lock:
            for entry in self._static_entries:
                key = build_key(entry.provider, "", entry.model_id)
                existing = self._cache.get(key)
                if existing is not None and existing.source.outranks(CapabilitySource.STATIC_REGISTRY):
                    continue
                self._cache[key] = entry.model_copy(update={"updated_at": self._clock()})

    def get(self, provider: Any, endpoint: Optional[str], model_id: str) -> Optional[ModelCapabilities]:
        """
        Resolve capabilities for a model.

        Order: endpoint specific entry, then the static entry, then any user
        override merged on top (reported as source user_override).
        """
        key = build_key(provider, endpoint, model_id)
        static_key = build_key(provider, "", model_id)
        with self._lock:
            caps = self.get_cached(provider, endpoint, model_id)
            override = self._overrides.get(key) or self._overrides.get(static_key)

        if override is None:
            return caps

        base = caps.model_dump() if caps is not None else {
            **default_capabilities(),
            "model_id": model_id,
            "provider": provider_id(provider),
        }
        merged = {**base, **override, "source": CapabilitySource.USER_OVERRIDE}
        return ModelCapabilities(**merged)

    def get_cached(self, provider: Any, endpoint: Optional[str], model_id: str) -> Optional[ModelCapabilities]:
        """Learned or static record for a model, ignoring user overrides."""
        with self._lock:
            return (
                self._cache.get(build_key(provider, endpoint, model_id))
                or self._cache.get(build_key(provider, "", model_id))
            )

    def set(
        self,
        provider: Any,
        endpoint: Optional[str],
        model_id: str,
        capabilities: CapabilityPatch,
        source: CapabilitySource,
    ) -> bool:
        """
        Write a (partial) capability record.

        The write is dropped when the stored record, or the static record
        it would shadow, has a strictly higher priority source. Otherwise
        defaults, the existing record and the patch are merged in that order.

        Returns:
            True when the write was applied
        """
        source = CapabilitySource(source)
        if source == CapabilitySource.USER_OVERRIDE:
            self.set_user_override(provider, endpoint, model_id, capabilities)
            return True

        key = build_key(provider, endpoint, model_id)
        static_key = build_key(provider, "", model_id)
        patch = _patch_to_dict(capabilities)

        with self._lock:
            existing = self._cache.get(key) or self._cache.get(static_key)
            if existing is not None and existing.source.outranks(source):
                logger.debug(
                    f"Dropped {source.value} capabilities for {key}: "
                    f"existing source {existing.source.value} has priority"
                )
                return False

            merged: Dict[str, Any] = default_capabilities()
            if existing is not None:
                merged.update(_patch_to_dict(existing.model_dump()))
            merged.update(patch)
            merged.update(
                model_id=model_id,
                provider=provider_id(provider),
                source=source,
                updated_at=self._clock(),
            )
            self._cache[key] = ModelCapabilities(**merged)
        return True

    def record_probe_result(
        self,
        provider: Any,
        endpoint: Optional[str],
        model_id: str,
        result: ProbeResult,
    ) -> bool:
        """Cache a probe outcome only when it was definitive."""
        if result.inconclusive:
            logger.debug(f"Not caching inconclusive probe for {build_key(provider, endpoint, model_id)}")
            return False
        return self.set(provider, endpoint, model_id, result.capabilities, result.source)

    def register_from_name_heuristic(
        self,
        provider: Any,
        endpoint: Optional[str],
        model_id: str,
    ) -> ModelCapabilities:
        """Seed an unknown model from its name; existing better data is kept."""
        heuristic = infer_capabilities_from_name(model_id, provider_id(provider))
        self.set(provider, endpoint, model_id, heuristic, CapabilitySource.NAME_HEURISTIC)
        return self.get(provider, endpoint, model_id) or heuristic

    # ---- user overrides ------------------------------------------------

    def set_user_override(
        self,
        provider: Any,
        endpoint: Optional[str],
        model_id: str,
        capabilities: CapabilityPatch,
    ) -> None:
        key = build_key(provider, endpoint, model_id)
        with self._lock:
            current = dict(self._overrides.get(key, {}))
            current.update(_patch_to_dict(capabilities))
            self._overrides[key] = current
        logger.info(f"User override set for {key}")

    def clear_user_override(self, provider: Any, endpoint: Optional[str], model_id: str) -> bool:
        key = build_key(provider, endpoint, model_id)
        with self._lock:
            return self._overrides.pop(key, None) is not None

    def export_user_overrides(self) -> Dict[str, Dict[str, Any]]:
        """JSON-friendly copy of every override, keyed by cache key."""
        with self._lock:
            overrides = {key: dict(value) for key, value in self._overrides.items()}
        return {
            key: {field: _jsonable(value) for field, value in value.items()}
            for key, value in overrides.items()
        }

    def restore_user_overrides(self, data: Mapping[str, Mapping[str, Any]]) -> int:
        """Replace all overrides with ones produced by export_user_overrides; returns the count."""
        overrides: Dict[str, Dict[str, Any]] = {}
        for key, value in (data or {}).items():
            if key.count("::") < 2:
                logger.warning(f"Skipping malformed override key: {key}")
                continue
            overrides[key] = _patch_to_dict(value)
        with self._lock:
            self._overrides = overrides
        return len(overrides)

    # ---- convenience lookups -------------------------------------------

    def supports_input_modality(
        self,
        provider: Any,
        endpoint: Optional[str],
        model_id: str,
        modality: InputModality,
    ) -> bool:
        """Unknown models are treated as text-only."""
        caps = self.get(provider, endpoint, model_id)
        if caps is None:
            return InputModality(modality) == InputModality.TEXT
        return InputModality(modality) in caps.input_modalities

    def supports_vision(self, provider: Any, endpoint: Optional[str], model_id: str) -> bool:
        return self.supports_input_modality(provider, endpoint, model_id, InputModality.IMAGE)

    def get_content_ordering(self, provider: Any, endpoint: Optional[str], model_id: str) -> ContentOrdering:
        caps = self.get(provider, endpoint, model_id)
        return caps.content_ordering if caps is not None else ContentOrdering.ANY

    def requires_images_first(self, provider: Any, endpoint: Optional[str], model_id: str) -> bool:
        return self.get_content_ordering(provider, endpoint, model_id) == ContentOrdering.IMAGES_FIRST

    # ---- maintenance ---------------------------------------------------

    def is_stale(self, capabilities: ModelCapabilities, max_age: Optional[float] = None) -> bool:
        """Probe and metadata records expire; curated and user data do not."""
        if capabilities.source not in (CapabilitySource.RUNTIME_PROBE, CapabilitySource.API_METADATA):
            return False
        if capabilities.updated_at is None:
            return True
        limit = settings.capability_stale_after if max_age is None else max_age
        return self._clock() - capabilities.updated_at > limit

    def snapshot(self) -> Dict[str, ModelCapabilities]:
        with self._lock:
            return dict(self._cache)

    def clear(self) -> None:
        """Drop learned records and overrides, keeping the static seed."""
        with self._lock:
            self._cache.clear()
            self._overrides.clear()
        self.seed_static_registry()


def _jsonable(value: Any) -> Any:
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    return getattr(value, "value", value)
