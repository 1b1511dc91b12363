# src/neo4jmapper/core/labels.py
"""
Neo4jMapper Label Registry

Keeps the two-way mapping between record types and the Neo4j labels their
nodes carry. Every ``GraphEntity`` subclass registers itself here when the
class is created; finders use the registry to turn a type into a label and
to turn the labels of a returned node back into a type.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional, Set, Tuple, Type, Union

from neo4jmapper.exceptions import LabelConflictError

logger = logging.getLogger(__name__)

# An include is either another label-bearing type or a literal label name.
LabelSource = Union[type, str]


class LabelRegistry:
    """
    Process-wide registry of label bindings.

    Types are kept in registration order. The label -> type mapping is derived
    from that sequence lazily: any mutation marks it dirty and the next lookup
    rebuilds it. Mutation and rebuild share one lock so a lookup never sees a
    half-built mapping.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._types: List[type] = []
        self._overrides: Dict[type, str] = {}
        self._includes: Dict[type, Tuple[LabelSource, ...]] = {}
        self._labels_to_types: Optional[Dict[str, type]] = None
        self._reported_conflicts: Set[Tuple[type, type]] = set()

    # =========================================================================
    # MUTATION
    # =========================================================================

    def register(self, cls: type) -> None:
        """Add a type to the registry and invalidate the label cache."""
        with self._lock:
            self._types.append(cls)
            self._labels_to_types = None
        logger.debug("Registered %s as label %r", cls.__qualname__, self.label_for(cls))

    def set_label_name(self, cls: type, name: str) -> None:
        """
        Give a type an explicit label instead of its class name.

        The override can be set once. Setting the same name again is a no-op,
        setting a different one raises ``LabelConflictError``.
        """
        name = str(name).strip()
        if not name:
            raise ValueError("Label name cannot be empty")

        with self._lock:
            current = self._overrides.get(cls)
            if current is not None and current != name:
                raise LabelConflictError(
                    f"{cls.__qualname__} is already mapped to label {current!r}, "
                    f"cannot remap it to {name!r}"
                )
            self._overrides[cls] = name
            self._labels_to_types = None

    def set_includes(self, cls: type, includes: Iterable[LabelSource]) -> None:
        """Declare the extra label-bearing types (or label names) a type carries."""
        with self._lock:
            self._includes[cls] = tuple(includes)

    def reset(self) -> None:
        """Forget every binding. Meant for test isolation."""
        with self._lock:
            self._types.clear()
            self._overrides.clear()
            self._includes.clear()
            self._reported_conflicts.clear()
            self._labels_to_types = None

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def label_for(self, cls: type) -> str:
        """Return the label for ``cls``: its explicit override or its class name."""
        return self._overrides.get(cls) or cls.__name__

    def has_explicit_label(self, cls: type) -> bool:
        return cls in self._overrides

    def type_for(self, label: str) -> Optional[type]:
        """Return the type mapped to ``label``, or None when no type claims it."""
        with self._lock:
            if self._labels_to_types is None:
                self._labels_to_types = self._build_label_map()
            return self._labels_to_types.get(label)

    def mapped_label_names(self, cls: type) -> Tuple[str, ...]:
        """
        Every label a node of ``cls`` carries.

        The type's own label comes first, followed by the flattened labels of
        its declared includes. Duplicates keep their first position.
        """
        names: List[str] = []
        self._collect_labels(cls, names, set())
        return tuple(names)

    def includes_for(self, cls: type) -> Tuple[LabelSource, ...]:
        return self._includes.get(cls, ())

    def registered_types(self) -> Tuple[type, ...]:
        with self._lock:
            return tuple(self._types)

    def __contains__(self, cls: object) -> bool:
        with self._lock:
            return cls in self._types

    def __len__(self) -> int:
        return len(self.registered_types())

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _build_label_map(self) -> Dict[str, type]:
        mapping: Dict[str, type] = {}
        for cls in self._types:
            if not isinstance(cls, type):
                continue
            label = self.label_for(cls)
            existing = mapping.get(label)
            if existing is not None and existing is not cls and (existing, cls) not in self._reported_conflicts:
                self._reported_conflicts.add((existing, cls))
                logger.warning(
                    "Label %r is claimed by both %s and %s; %s wins",
                    label, existing.__qualname__, cls.__qualname__, cls.__qualname__,
                )
            mapping[label] = cls
        return mapping

    def _collect_labels(self, source: LabelSource, names: List[str], seen: set) -> None:
        if isinstance(source, str):
            if source not in names:
                names.append(source)
            return

        # Guards against include cycles
        if source in seen:
            return
        seen.add(source)

        label = self.label_for(source)
        if label not in names:
            names.append(label)
        for included in self.includes_for(source):
            self._collect_labels(included, names, seen)


_default_registry: Optional[LabelRegistry] = None
_default_registry_lock = threading.Lock()


def get_registry() -> LabelRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _default_registry
    if _default_registry is None:
        with _default_registry_lock:
            if _default_registry is None:
                _default_registry = LabelRegistry()
    return _default_registry


def label_name_for(cls: Type) -> str:
    """Shortcut for ``get_registry().label_for(cls)``."""
    return get_registry().label_for(cls)
