"""
Workflow Registry

Merge the built-in catalogue with custom workflows discovered from a
directory into one lookup and listing surface.

Name collisions: a custom workflow always shadows a built-in of the same
name. Between two custom files declaring the same name, the first in sorted
path order wins and the other is reported as a discovery error.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from config import env_manager

from .builtin import BUILT_IN_WORKFLOWS
from .definition import EXTENSION_FORMATS, WorkflowDefinition, load_workflow_file
from .engine import ToolInvoker, WorkflowEngine
from .errors import (
    ConfigurationError,
    ParseError,
    UnknownWorkflowError,
    ValidationError,
)
from .state import WorkflowExecutionResult

logger = logging.getLogger(__name__)


class WorkflowSource(str, Enum):
    """Where a workflow definition came from."""

    BUILT_IN = "built-in"
    CUSTOM = "custom"


@dataclass(frozen=True)
class WorkflowSummary:
    """Lightweight listing entry for a workflow."""

    name: str
    description: str
    version: Optional[str]
    source: WorkflowSource
    step_count: int

    @classmethod
    def of(cls, definition: WorkflowDefinition, source: WorkflowSource) -> "WorkflowSummary":
        return cls(
            name=definition.name,
            description=definition.description,
            version=definition.version,
            source=source,
            step_count=len(definition.steps),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "source": self.source.value,
            "step_count": self.step_count,
        }


@dataclass(frozen=True)
class DiscoveryError:
    """A custom workflow file that could not be loaded."""

    path: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message}


@dataclass
class WorkflowListing:
    """Result of listing workflows: summaries plus per-file discovery errors."""

    summaries: List[WorkflowSummary] = field(default_factory=list)
    errors: List[DiscoveryError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflows": [s.to_dict() for s in self.summaries],
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class _Entry:
    definition: WorkflowDefinition
    source: WorkflowSource
    path: Optional[str] = None


def discover_custom_workflows(
    directory: Union[str, Path],
) -> Tuple[List[_Entry], List[DiscoveryError]]:
    """
    Load every workflow file in a directory.

    Malformed files are reported individually; a file that disappears during
    the scan is skipped.

    Args:
        directory: Directory to scan (non-recursive)

    Returns:
        Tuple of (loaded entries, discovery errors)
    """
    root = Path(directory)
    entries: List[_Entry] = []
    errors: List[DiscoveryError] = []

    if not root.is_dir():
        logger.debug(f"Custom workflow directory {root} does not exist")
        return entries, errors

    try:
        candidates = sorted(
            p for p in root.iterdir() if p.suffix.lower() in EXTENSION_FORMATS
        )
    except OSError as e:
        logger.warning(f"Could not scan custom workflow directory {root}: {e}")
        return entries, [DiscoveryError(str(root), str(e))]

    seen: Dict[str, str] = {}
    for path in candidates:
        try:
            if not path.is_file():
                continue
            definition = load_workflow_file(path)
        except FileNotFoundError:
            logger.debug(f"Workflow file {path} vanished during discovery")
            continue
        except (ParseError, ValidationError, ConfigurationError, OSError) as e:
            logger.warning(f"Skipping malformed workflow file {path}: {e}")
            errors.append(DiscoveryError(str(path), str(e)))
            continue

        if definition.name in seen:
            errors.append(
                DiscoveryError(
                    str(path),
                    f"Duplicate workflow name '{definition.name}' "
                    f"(already defined in {seen[definition.name]})",
                )
            )
            continue

        seen[definition.name] = str(path)
        entries.append(_Entry(definition, WorkflowSource.CUSTOM, str(path)))

    return entries, errors


def discover_workflows(directory: Union[str, Path]) -> WorkflowListing:
    """Summaries of the custom workflows in a directory plus per-file errors."""
    entries, errors = discover_custom_workflows(directory)
    return WorkflowListing(
        summaries=[WorkflowSummary.of(e.definition, e.source) for e in entries],
        errors=errors,
    )


class WorkflowRegistry:
    """
    Lookup and listing surface over built-in and custom workflows.

    Custom workflows are rediscovered on every listing or lookup so edits to
    the directory are picked up without restarting.
    """

    def __init__(
        self,
        custom_dir: Optional[Union[str, Path]] = None,
        engine: Optional[WorkflowEngine] = None,
    ):
        """
        Initialize the registry.

        Args:
            custom_dir: Directory of custom workflow files. Defaults to the
                workflow_custom_dir setting; discovery is disabled when
                neither is set.
            engine: Engine used by run(). Created on demand if omitted.
        """
        if custom_dir is None:
            custom_dir = env_manager.get_custom_dir()
        self.custom_dir = Path(custom_dir) if custom_dir else None
        self._engine = engine
        self._built_in: Dict[str, _Entry] = {
            w.name: _Entry(w, WorkflowSource.BUILT_IN) for w in BUILT_IN_WORKFLOWS
        }

    @property
    def engine(self) -> WorkflowEngine:
        if self._engine is None:
            self._engine = WorkflowEngine()
        return self._engine

    def _resolve(self) -> Tuple[Dict[str, _Entry], List[DiscoveryError]]:
        entries: Dict[str, _Entry] = dict(self._built_in)
        errors: List[DiscoveryError] = []
        if self.custom_dir is not None:
            custom, errors = discover_custom_workflows(self.custom_dir)
            for entry in custom:
                if entry.definition.name in self._built_in:
                    logger.info(
                        f"Custom workflow '{entry.definition.name}' from {entry.path} "
                        f"shadows the built-in workflow"
                    )
                entries[entry.definition.name] = entry
        return entries, errors

    def discover(self) -> WorkflowListing:
        """Custom workflows only, with per-file discovery errors."""
        if self.custom_dir is None:
            return WorkflowListing()
        return discover_workflows(self.custom_dir)

    def list_workflows(self) -> WorkflowListing:
        """
        List every available workflow.

        Built-ins come first in catalogue order, followed by custom-only
        workflows in file order. A custom workflow shadowing a built-in takes
        the built-in's position.
        """
        entries, errors = self._resolve()
        ordered = list(self._built_in) + [n for n in entries if n not in self._built_in]
        summaries = [
            WorkflowSummary.of(entries[name].definition, entries[name].source)
            for name in ordered
        ]
        return WorkflowListing(summaries=summaries, errors=errors)

    def get(self, name: str) -> WorkflowDefinition:
        """
        Look up a workflow by name.

        Raises:
            UnknownWorkflowError: If no workflow has that name
        """
        entries, _ = self._resolve()
        entry = entries.get(name)
        if entry is None:
            raise UnknownWorkflowError(name)
        return entry.definition

    def source_of(self, name: str) -> WorkflowSource:
        """Provenance of the workflow currently registered under a name."""
        entries, _ = self._resolve()
        if name not in entries:
            raise UnknownWorkflowError(name)
        return entries[name].source

    def save(
        self,
        definition: Union[WorkflowDefinition, Mapping[str, Any]],
        directory: Optional[Union[str, Path]] = None,
    ) -> Path:
        """
        Validate a workflow and write it as <name>.yaml.

        Args:
            definition: Definition or raw document to save
            directory: Target directory. Defaults to the registry's custom
                directory, then the workflow_save_dir setting.

        Returns:
            Path of the written file

        Raises:
            ValidationError: If the document violates the schema
        """
        if not isinstance(definition, WorkflowDefinition):
            definition = WorkflowDefinition.from_dict(dict(definition))

        target = Path(directory or self.custom_dir or env_manager.get_save_dir())
        target.mkdir(parents=True, exist_ok=True)
        path = target / f"{definition.name}.yaml"

        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                definition.to_dict(), f, sort_keys=False, allow_unicode=True, width=120
            )

        logger.info(f"Saved workflow '{definition.name}' to {path}")
        return path

    async def run(
        self,
        name: str,
        variables: Optional[Mapping[str, Any]],
        invoker: ToolInvoker,
        **kwargs: Any,
    ) -> WorkflowExecutionResult:
        """
        Execution entry point: look up a workflow by name and run it.

        Raises:
            UnknownWorkflowError: If the name is unknown; no step runs
        """
        definition = self.get(name)
        return await self.engine.execute(definition, variables, invoker, **kwargs)
