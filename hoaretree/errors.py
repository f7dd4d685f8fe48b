"""Structured error objects for hoaretree.

Every error is machine-readable: a kind, a message, the proof-tree path it
refers to (when there is one) and free-form details. Nothing in the core is
fatal; these records are what the CLI and the session report.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence


class ErrorKind(Enum):
    SYNTAX_ERROR = "syntax_error"
    RULE_MISMATCH = "rule_mismatch"
    STALE_PATH = "stale_path"
    ORACLE_ERROR = "oracle_error"
    INVALID_STEP = "invalid_step"
    FILE_ERROR = "file_error"


@dataclass
class SourceLocation:
    line: int
    column: int
    file: str = "<input>"

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


def format_path(path: Sequence[int]) -> str:
    """Render a node path the way the CLI accepts it: ``0.1`` (root is ``.``)."""
    if not path:
        return "."
    return ".".join(str(i) for i in path)


@dataclass
class ProofError:
    kind: ErrorKind
    message: str
    path: Optional[tuple[int, ...]] = None
    location: Optional[SourceLocation] = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.path is not None:
            d["path"] = format_path(self.path)
        if self.location:
            d["location"] = {
                "file": self.location.file,
                "line": self.location.line,
                "column": self.location.column,
            }
        if self.details:
            d["details"] = self.details
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __str__(self) -> str:
        where = ""
        if self.path is not None:
            where = f" at node {format_path(self.path)}"
        elif self.location:
            where = f" at {self.location}"
        return f"[{self.kind.value}]{where}: {self.message}"


def syntax_error(
    message: str,
    location: Optional[SourceLocation] = None,
) -> ProofError:
    return ProofError(
        kind=ErrorKind.SYNTAX_ERROR,
        message=message,
        location=location,
    )


def invalid_step(
    path: Sequence[int],
    rule: Optional[str],
    reason: str,
    triple: str,
) -> ProofError:
    return ProofError(
        kind=ErrorKind.INVALID_STEP,
        message=reason,
        path=tuple(path),
        details={
            "rule": rule,
            "triple": triple,
        },
    )


def oracle_error(
    status: str,
    messages: list[str],
    path: Optional[Sequence[int]] = None,
) -> ProofError:
    return ProofError(
        kind=ErrorKind.ORACLE_ERROR,
        message=f"Oracle returned {status}",
        path=tuple(path) if path is not None else None,
        details={
            "status": status,
            "messages": messages,
        },
    )


def file_error(message: str, filename: str = "<input>") -> ProofError:
    return ProofError(
        kind=ErrorKind.FILE_ERROR,
        message=message,
        details={"file": filename},
    )


class HoareTreeError(Exception):
    """Exception wrapping one or more ProofErrors."""

    def __init__(self, errors: list[ProofError] | ProofError):
        if isinstance(errors, ProofError):
            errors = [errors]
        self.errors = errors
        super().__init__(self._format())

    def _format(self) -> str:
        return "\n".join(str(e) for e in self.errors)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps([e.to_dict() for e in self.errors], indent=indent)
