"""Capability declaration sources.

Every component that owns capabilities contributes a declaration source:
a mapping of capability name to a descriptor with at least a ``captype``.
Core components register static sources in code; installed modules ship
an ``access.yaml`` file next to their code.

Example ``access.yaml``:

    capabilities:
      reports:view:
        captype: read
      reports:export:
        captype: write
"""

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog
import yaml

from warden.core.access.schemas import (
    CapabilityDefinition,
    CapType,
    SkippedDeclaration,
    split_capability,
)
from warden.core.constants import MODULE_ACCESS_FILENAME


logger = structlog.get_logger()


@runtime_checkable
class DeclarationSource(Protocol):
    """Anything that can produce capability declarations."""

    name: str

    def load(self) -> Mapping[str, Any]:
        """Return the raw capability name -> descriptor mapping."""
        ...


class StaticDeclarationSource:
    """Declarations held in memory, registered by a core component."""

    def __init__(self, name: str, declarations: Mapping[str, Any]) -> None:
        self.name = name
        self._declarations = declarations

    def load(self) -> Mapping[str, Any]:
        return self._declarations

    def __repr__(self) -> str:
        return f"<StaticDeclarationSource({self.name})>"


class YamlDeclarationSource:
    """Declarations read from a module's ``access.yaml``."""

    def __init__(self, path: Path, name: str | None = None) -> None:
        self.path = path
        self.name = name or path.parent.name

    def load(self) -> Mapping[str, Any]:
        """Read and return the declarations in the file.

        Raises:
            OSError: If the file cannot be read
            yaml.YAMLError: If the file is not valid YAML
            ValueError: If the document is not a mapping
        """
        with self.path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data is None:
            return {}
        if isinstance(data, Mapping) and "capabilities" in data:
            data = data["capabilities"] or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"{self.path} must contain a mapping of capabilities")
        return data

    def __repr__(self) -> str:
        return f"<YamlDeclarationSource({self.path})>"


def parse_declarations(
    source: str,
    declarations: Mapping[Any, Any],
) -> tuple[list[CapabilityDefinition], list[SkippedDeclaration]]:
    """Validate raw declarations from one source.

    Args:
        source: Source name, recorded against skipped entries
        declarations: Raw capability name -> descriptor mapping

    Returns:
        The accepted definitions and the skipped entries with reasons
    """
    accepted: list[CapabilityDefinition] = []
    skipped: list[SkippedDeclaration] = []

    for name, definition in declarations.items():
        parts = split_capability(name)
        if parts is None:
            skipped.append(
                SkippedDeclaration(source=source, name=str(name), reason="malformed_name")
            )
            continue
        if not isinstance(definition, Mapping) or "captype" not in definition:
            skipped.append(
                SkippedDeclaration(source=source, name=name, reason="missing_captype")
            )
            continue
        try:
            captype = CapType(definition["captype"])
        except ValueError:
            skipped.append(
                SkippedDeclaration(source=source, name=name, reason="invalid_captype")
            )
            continue
        accepted.append(
            CapabilityDefinition(name=name, captype=captype, component=parts[0])
        )

    return accepted, skipped


class DeclarationRegistry:
    """Statically assembled list of declaration sources.

    Core sources are registered explicitly; module sources are found by
    looking for ``<module>/access.yaml`` under the modules directory.
    """

    def __init__(
        self,
        sources: Iterable[DeclarationSource] = (),
        modules_dir: Path | None = None,
    ) -> None:
        self._sources: list[DeclarationSource] = list(sources)
        self.modules_dir = modules_dir

    def register(self, source: DeclarationSource) -> None:
        """Add a declaration source."""
        self._sources.append(source)

    def module_sources(self) -> list[DeclarationSource]:
        """Return YAML sources for installed modules, sorted by module name."""
        if self.modules_dir is None or not self.modules_dir.is_dir():
            return []

        sources: list[DeclarationSource] = []
        for path in sorted(self.modules_dir.iterdir()):
            access_file = path / MODULE_ACCESS_FILENAME
            if path.is_dir() and access_file.is_file():
                sources.append(YamlDeclarationSource(access_file))
        return sources

    def discover(self) -> list[DeclarationSource]:
        """Return all sources: registered ones first, then modules."""
        sources = [*self._sources, *self.module_sources()]
        logger.debug(
            "declaration_sources_discovered",
            sources=[source.name for source in sources],
        )
        return sources


# Capabilities owned by the built-in components
CORE_DECLARATIONS: dict[str, dict[str, Mapping[str, str]]] = {
    "core": {
        "core:authenticated": {"captype": "read"},
        "core:viewdashboard": {"captype": "read"},
    },
    "auth": {
        "auth:add": {"captype": "write"},
        "auth:view": {"captype": "read"},
    },
    "rbac": {
        "rbac:manage": {"captype": "write"},
        "rbac:viewaudit": {"captype": "read"},
        "rbac:importexport": {"captype": "write"},
    },
}


def build_declaration_registry(modules_dir: Path | None = None) -> DeclarationRegistry:
    """Create a registry holding the core sources and the modules directory."""
    registry = DeclarationRegistry(modules_dir=modules_dir)
    for component, declarations in CORE_DECLARATIONS.items():
        registry.register(StaticDeclarationSource(component, declarations))
    return registry
