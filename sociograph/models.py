"""Core data models shared by parsing, graph, git, and diff layers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Literal, Optional, Set, Union


# ===================================================================
# Parse output
# ===================================================================

@dataclass(frozen=True)
class FunctionNode:
    id: str
    name: str
    file: str
    rel_path: str
    module: str
    line: int
    end_line: int
    params: int
    complexity: int
    lines_of_code: int
    kind: str
    class_name: Optional[str] = None


@dataclass(frozen=True)
class RawCall:
    """A call site whose target has not been resolved yet."""
    from_id: str
    callee_name: str
    callee_object: Optional[str]
    file: str
    line: int


@dataclass(frozen=True)
class ImportBinding:
    resolved_file: str
    exported_name: str
    is_namespace: bool = False


@dataclass
class ParsedFile:
    path: Path
    functions: List[FunctionNode] = field(default_factory=list)
    calls: List[RawCall] = field(default_factory=list)
    import_map: Dict[str, ImportBinding] = field(default_factory=dict)
    default_export: Optional[str] = None


# ===================================================================
# Graph
# ===================================================================

@dataclass(frozen=True)
class CallEdge:
    from_id: str
    to_id: Optional[str]
    callee_name: str
    resolved: bool
    cross_module: bool
    file: str
    line: int


@dataclass
class Cluster:
    node_ids: List[str]
    modules: List[str]
    density: float
    hubs: List[str]

    @property
    def size(self) -> int:
        return len(self.node_ids)

    @property
    def is_multi_module(self) -> bool:
        return len(self.modules) > 1


@dataclass(frozen=True)
class BridgePair:
    from_module: str
    to_module: str
    exclusivity: float
    total: int


@dataclass
class BridgeInfo:
    score: float
    pairs: List[BridgePair]


# ===================================================================
# Git history
# ===================================================================

@dataclass(frozen=True)
class LineRange:
    start: int
    end: int


@dataclass
class FileChange:
    file: str
    ranges: List[LineRange] = field(default_factory=list)


@dataclass
class Commit:
    hash: str
    author: str
    date: datetime
    message: str
    is_fix: bool
    changes: List[FileChange] = field(default_factory=list)

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["date"] = self.date.isoformat()
        return payload

    @classmethod
    def from_dict(cls, payload: dict) -> "Commit":
        return cls(
            hash=payload["hash"],
            author=payload["author"],
            date=datetime.fromisoformat(payload["date"]),
            message=payload["message"],
            is_fix=payload["is_fix"],
            changes=[
                FileChange(
                    file=change["file"],
                    ranges=[LineRange(r["start"], r["end"]) for r in change["ranges"]],
                )
                for change in payload["changes"]
            ],
        )


@dataclass
class GitHistory:
    commits: List[Commit]
    git_root: Path


@dataclass
class GitMetrics:
    commits: int = 0
    fix_commits: int = 0
    authors: Set[str] = field(default_factory=set)
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    co_commits: Dict[str, int] = field(default_factory=dict)

    @property
    def fix_ratio(self) -> float:
        return self.fix_commits / self.commits if self.commits else 0.0


@dataclass(frozen=True)
class Partner:
    partner_id: str
    correlation: float
    co_count: int


# ===================================================================
# Classification
# ===================================================================

@dataclass(frozen=True)
class PartnerDetail:
    """Codependent payload: the function this one keeps changing with."""
    partner_id: str
    partner_name: str
    partner_module: Optional[str]
    correlation: float
    co_count: int
    kind: Literal["partner"] = "partner"


@dataclass(frozen=True)
class BridgeDetail:
    """Bridge payload: the module pairs this function connects."""
    pairs: List[BridgePair]
    kind: Literal["bridge"] = "bridge"


ArchetypeDetail = Union[PartnerDetail, BridgeDetail]


@dataclass(frozen=True)
class Detection:
    confidence: float
    reasons: List[str]
    detail: Optional[ArchetypeDetail] = None


@dataclass(frozen=True)
class Classification:
    archetype: str
    label: str
    emoji: str
    description: str
    confidence: float
    reasons: List[str]
    detail: Optional[ArchetypeDetail] = None


# ===================================================================
# Diff mode
# ===================================================================

@dataclass
class NodeSnapshot:
    id: str
    name: str
    rel_path: str
    line: int
    module: str
    complexity: int
    lines_of_code: int
    params: int
    fan_in: int
    fan_out: int
    cross_module_fan_out: int
    archetypes: List[str]

    @property
    def stable_key(self) -> str:
        return f"{self.rel_path}::{self.name}"


@dataclass
class MetricDelta:
    complexity: int = 0
    fan_in: int = 0
    fan_out: int = 0
    cross_module_fan_out: int = 0
    lines_of_code: int = 0


DiffKind = Literal["changed", "added", "removed"]
Verdict = Literal["stressed", "improved", "neutral", "new", "gone"]


@dataclass
class FunctionDiff:
    kind: DiffKind
    stable_key: str
    name: str
    rel_path: str
    module: str
    delta: MetricDelta
    before: Optional[NodeSnapshot]
    after: Optional[NodeSnapshot]
    archetypes_before: List[str]
    archetypes_after: List[str]
    archetypes_gained: List[str]
    archetypes_lost: List[str]
    verdict: Verdict
    signals: List[str]


@dataclass
class DiffSummary:
    added: int = 0
    removed: int = 0
    stressed: int = 0
    improved: int = 0
    unchanged: int = 0


@dataclass
class DiffResult:
    before_ref: str
    after_ref: str
    diffs: List[FunctionDiff]
    summary: DiffSummary
