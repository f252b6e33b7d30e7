# ssl_migrate/models.py
"""
Data models shared by the resolver, the migration stages and fleet discovery.
"""
from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Tuple

StageName = Literal["content", "assets", "certificate"]
StageStatus = Literal["ok", "dry-run", "skipped", "failed", "declined", "aborted"]


@dataclass(frozen=True, slots=True)
class ResolvedSite:
    """Canonical tenant: positive id plus its primary (or mapped) domain/path."""

    id: int
    domain: str

    def __post_init__(self) -> None:
        if isinstance(self.id, bool) or not isinstance(self.id, int) or self.id <= 0:
            raise ValueError(f"Site id must be a positive integer, got {self.id!r}")
        if not self.domain:
            raise ValueError(f"Site {self.id} has an empty domain")

    @property
    def is_path(self) -> bool:
        """True when ``domain`` holds a path of a path-based install."""
        return self.domain.startswith("/")


@dataclass(frozen=True, slots=True)
class SkippedToken:
    """Token dropped during list resolution and the reason why."""

    token: str
    reason: str


@dataclass(frozen=True, slots=True)
class ResolutionResult:
    resolved: Tuple[ResolvedSite, ...] = ()
    skipped: Tuple[SkippedToken, ...] = ()

    @property
    def ids(self) -> List[int]:
        return [site.id for site in self.resolved]


@dataclass(frozen=True, slots=True)
class TenantTableProbe:
    tenant_id: int
    table_name: str
    exists: bool


@dataclass(frozen=True, slots=True)
class ProtectedContentRecord:
    """Tenant with password-protected content that is also domain-mapped."""

    tenant_id: int
    protected_items: int


@dataclass(frozen=True, slots=True)
class ContactRecord:
    tenant_id: int
    canonical_url: str
    mapped_domain: str
    admin_email: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ContactRecord:
        return cls(
            tenant_id=int(data["tenant_id"]),
            canonical_url=str(data.get("canonical_url", "")),
            mapped_domain=str(data.get("mapped_domain", "")),
            admin_email=str(data.get("admin_email", "")),
        )


@dataclass(frozen=True, slots=True)
class FleetReport:
    """Contact records ordered by tenant id; rebuilt as a whole, never patched."""

    records: Tuple[ContactRecord, ...] = ()
    generated_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.records, key=lambda r: r.tenant_id))
        object.__setattr__(self, "records", ordered)

    def __len__(self) -> int:
        return len(self.records)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "records": [r.to_dict() for r in self.records],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FleetReport:
        return cls(
            records=tuple(ContactRecord.from_dict(r) for r in data.get("records", [])),
            generated_at=float(data.get("generated_at", 0.0)),
        )

    def json(self, *, pretty: bool = False) -> str:
        """JSON array of contact records (no metadata)."""
        return json.dumps(
            [r.to_dict() for r in self.records],
            ensure_ascii=False,
            indent=2 if pretty else None,
        )


@dataclass(frozen=True, slots=True)
class StageResult:
    stage: StageName
    site: ResolvedSite
    status: StageStatus
    detail: str = ""


@dataclass(slots=True)
class MigrationReport:
    """Stage outcomes in execution order: all content, then assets, then certificates."""

    results: List[StageResult] = field(default_factory=list)

    def add(self, result: StageResult) -> StageResult:
        self.results.append(result)
        return result

    def for_stage(self, stage: StageName) -> List[StageResult]:
        return [r for r in self.results if r.stage == stage]

    @property
    def failed(self) -> List[StageResult]:
        return [r for r in self.results if r.status == "failed"]

    @property
    def aborted(self) -> List[StageResult]:
        return [r for r in self.results if r.status == "aborted"]

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_list(self) -> List[Dict[str, Any]]:
        return [
            {
                "stage": r.stage,
                "site_id": r.site.id,
                "domain": r.site.domain,
                "status": r.status,
                "detail": r.detail,
            }
            for r in self.results
        ]


__all__ = [
    "ResolvedSite",
    "SkippedToken",
    "ResolutionResult",
    "TenantTableProbe",
    "ProtectedContentRecord",
    "ContactRecord",
    "FleetReport",
    "StageResult",
    "MigrationReport",
]
