"""Interactive decision ports used by install and save.

The core never talks to a terminal directly. Commands inject the click-backed
implementations; tests inject fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import cast

import click

from agentpack.models.plan import Resolution, TargetConflict


@dataclass(frozen=True)
class SaveCandidateView:
    """What the user is shown for one save candidate."""

    workspace_path: str
    platform: str | None
    preview: str


@dataclass(frozen=True)
class SaveSelection:
    """User choice among distinct save candidates.

    Attributes:
        universal: Index of the candidate to store as the universal source,
            or None to leave the universal source untouched
        platform_specific: Indices to store as platform-qualified siblings
    """

    universal: int | None
    platform_specific: frozenset[int] = field(default_factory=frozenset)


class ConflictPrompt(ABC):
    """Per-target conflict decision during install."""

    @abstractmethod
    def choose(self, conflict: TargetConflict) -> Resolution:
        """Decide how to handle one colliding target.

        Args:
            conflict: The colliding target and its current owner, if any

        Returns:
            "overwrite", "skip" or "keep-both"
        """
        ...


class SavePrompt(ABC):
    """Selection among multiple distinct workspace versions during save."""

    @abstractmethod
    def select(self, registry_key: str, candidates: list[SaveCandidateView]) -> SaveSelection:
        """Choose which candidate becomes the universal source.

        Args:
            registry_key: Package-relative path being saved
            candidates: Distinct candidates in workspace-path order

        Returns:
            SaveSelection referencing candidates by index
        """
        ...


class ClickConflictPrompt(ConflictPrompt):
    """Terminal implementation using click prompts."""

    def choose(self, conflict: TargetConflict) -> Resolution:
        if conflict.owner is not None:
            detail = f"owned by {conflict.owner.package_name}"
        else:
            detail = "exists and is not tracked"
        click.echo(f"{conflict.target.relative_path} {detail}", err=True)
        choice = click.prompt(
            "  Resolve",
            type=click.Choice(["overwrite", "skip", "keep-both"]),
            default="keep-both",
            err=True,
        )
        return cast(Resolution, choice)


class ClickSavePrompt(SavePrompt):
    """Terminal implementation using click prompts."""

    def select(self, registry_key: str, candidates: list[SaveCandidateView]) -> SaveSelection:
        click.echo(f"Multiple workspace versions of {registry_key}:", err=True)
        for index, candidate in enumerate(candidates, start=1):
            platform = candidate.platform or "unknown platform"
            click.echo(f"  {index}. {candidate.workspace_path} ({platform})", err=True)

        chosen = click.prompt(
            "Save which version as universal (0 for none)",
            type=click.IntRange(0, len(candidates)),
            default=1,
            err=True,
        )
        universal = chosen - 1 if chosen > 0 else None

        platform_specific: set[int] = set()
        for index, candidate in enumerate(candidates):
            if index == universal or candidate.platform is None:
                continue
            if click.confirm(
                f"Keep {candidate.workspace_path} as {candidate.platform}-specific?",
                default=False,
                err=True,
            ):
                platform_specific.add(index)

        return SaveSelection(universal=universal, platform_specific=frozenset(platform_specific))
