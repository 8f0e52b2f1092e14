"""Validation and repair result models."""

from typing import Any, Literal

from pydantic import BaseModel, Field, computed_field

from genui.providers.llm.base import UsageRecord

IssueSeverity = Literal["error", "warning"]
IssueKind = Literal[
    "schema",
    "props",
    "layout",
    "density",
    "safety",
    "icon",
    "emoji",
    "version",
]


class ValidationIssue(BaseModel):
    """A single finding from a validation pass."""

    kind: IssueKind
    message: str
    severity: IssueSeverity = "error"
    path: str = "root"


class ValidationResult(BaseModel):
    """Aggregated findings of all validation passes."""

    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def error_messages(self) -> list[str]:
        return [issue.message for issue in self.errors]

    @property
    def warning_messages(self) -> list[str]:
        return [issue.message for issue in self.warnings]

    def add(self, issue: ValidationIssue) -> None:
        if issue.severity == "error":
            self.errors.append(issue)
        else:
            self.warnings.append(issue)


RepairMethod = str  # "sanitizer", "llm-<tier>" or "llm-partial"


class RepairResult(BaseModel):
    """Outcome of one repair agent invocation."""

    candidate: Any
    method: RepairMethod
    success: bool
    remaining_errors: list[str] = Field(default_factory=list)
    usage: list[UsageRecord] = Field(default_factory=list)
