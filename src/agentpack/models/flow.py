"""Flow rule and platform definition models.

These models validate user-authored platform configuration (the built-in
``data/platforms.yml`` and a workspace's ``.agentpack/platforms.yml``). They are
read-only; namespacing produces modified copies via ``model_copy``.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

MergeKind = Literal["replace", "shallow", "deep", "composite"]

MAP_OPERATORS = ("$rename", "$set", "$unset", "$copy")


class SwitchCase(BaseModel):
    """A single case of a $switch expression.

    ``pattern`` is compared against the switch field's value: a string is an
    exact match or a glob, a mapping is compared by deep equality.
    """

    model_config = ConfigDict(frozen=True)

    pattern: Any
    value: str


class SwitchExpression(BaseModel):
    """Conditional target pattern evaluated against context variables."""

    model_config = ConfigDict(frozen=True)

    field: str
    cases: list[SwitchCase]
    default: str | None = None

    @field_validator("field")
    @classmethod
    def validate_field(cls, v: str) -> str:
        """Switch fields must reference a $$variable."""
        if not v.startswith("$$") or len(v) <= 2:
            msg = f"Switch field must reference a $$variable: {v}"
            raise ValueError(msg)
        return v


class SwitchTarget(BaseModel):
    """Wrapper matching the ``{"$switch": {...}}`` shape used in YAML."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    switch: SwitchExpression = Field(alias="$switch")


class Condition(BaseModel):
    """Guard condition for a flow.

    All populated clauses must hold. ``and``/``or``/``not`` nest further
    conditions.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    exists: str | None = None
    platform: str | None = None
    key: str | None = None
    equals: Any = None
    all_of: list["Condition"] | None = Field(default=None, alias="and")
    any_of: list["Condition"] | None = Field(default=None, alias="or")
    negate: "Condition | None" = Field(default=None, alias="not")


Condition.model_rebuild()


class Flow(BaseModel):
    """Declarative source-to-target mapping rule."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: str | list[str] = Field(alias="from")
    to: str | SwitchTarget
    merge: MergeKind = "replace"
    when: Condition | None = None
    map: list[dict[str, Any]] | None = None
    pick: list[str] | None = None
    omit: list[str] | None = None
    embed: str | None = None
    platforms: list[str] | None = None

    @field_validator("from_")
    @classmethod
    def validate_from(cls, v: str | list[str]) -> str | list[str]:
        """Source patterns must be non-empty."""
        patterns = [v] if isinstance(v, str) else v
        if not patterns or any(not p.strip() for p in patterns):
            msg = "Flow 'from' must contain at least one non-empty pattern"
            raise ValueError(msg)
        return v

    @field_validator("map")
    @classmethod
    def validate_map(cls, v: list[dict[str, Any]] | None) -> list[dict[str, Any]] | None:
        """Each map operation carries exactly one known operator."""
        if v is None:
            return v
        for op in v:
            if len(op) != 1 or next(iter(op)) not in MAP_OPERATORS:
                msg = f"Invalid map operation: {op}"
                raise ValueError(msg)
        return v

    @property
    def source_patterns(self) -> list[str]:
        """Source patterns in priority order."""
        if isinstance(self.from_, str):
            return [self.from_]
        return list(self.from_)

    @property
    def is_merge(self) -> bool:
        """True when the output file is shared with other packages."""
        return self.merge != "replace"

    @property
    def has_transforms(self) -> bool:
        """True when content is restructured rather than copied."""
        return bool(self.map or self.pick or self.omit or self.embed)

    def applies_to(self, platform: str) -> bool:
        """Check the optional platform restriction."""
        return self.platforms is None or platform in self.platforms


class PlatformDefinition(BaseModel):
    """Per-tool rule set and workspace layout."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    root_dir: str
    root_file: str | None = None
    enabled: bool = True
    export: list[Flow] = Field(default_factory=list)
    import_: list[Flow] = Field(default_factory=list, alias="import")
    variables: dict[str, Any] = Field(default_factory=dict)

    @field_validator("root_dir")
    @classmethod
    def validate_root_dir(cls, v: str) -> str:
        """Root directory must be a non-empty relative path."""
        stripped = v.strip().rstrip("/")
        if not stripped:
            msg = "Platform root_dir must not be empty"
            raise ValueError(msg)
        return stripped


class PlatformsConfig(BaseModel):
    """Top-level shape of a platforms file: definitions keyed by platform id."""

    model_config = ConfigDict(frozen=True)

    platforms: dict[str, PlatformDefinition] = Field(default_factory=dict)
