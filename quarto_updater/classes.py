# The MIT License (MIT)
# Copyright © 2025 Entrius

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from quarto_updater.constants import GITHUB_DOMAIN


class UpdateStrategy(Enum):
    """Which update magnitudes the resolver accepts"""

    ALL = "all"
    MINOR = "minor"
    PATCH = "patch"


class AutoMergeStrategy(Enum):
    """Largest update magnitude that may be auto-merged"""

    ALL = "all"
    MINOR = "minor"
    PATCH = "patch"


class MergeMethod(Enum):
    """Merge method used when auto-merge fires"""

    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"

    @property
    def graphql_value(self) -> str:
        """PullRequestMergeMethod enum value expected by the GraphQL API."""
        return self.value.upper()


class UpdateType(Enum):
    """Semver magnitude of a version bump"""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class InstalledExtension:
    """Snapshot of an extension found under an _extensions directory"""

    owner: str
    name: str
    manifest_path: str
    version: Optional[str] = None
    source: Optional[str] = None  # install reference, e.g. "owner/repo@v1.2.0"
    repository: Optional[str] = None  # source without the "@ref" suffix

    @property
    def name_with_owner(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class ExtensionManifest:
    """Fields read from an _extension.yml file"""

    title: Optional[str] = None
    author: Optional[str] = None
    version: Optional[str] = None
    contributes: Optional[str] = None  # comma-separated contribution kinds
    source: Optional[str] = None
    repository: Optional[str] = None
    quarto_required: Optional[str] = None


@dataclass(frozen=True)
class RegistryEntry:
    """Latest-release metadata for one extension in the registry"""

    full_name: str
    latest_version: Optional[str] = None
    latest_tag: Optional[str] = None
    latest_release_url: str = ""
    description: str = ""
    html_url: str = ""

    @property
    def latest(self) -> Optional[str]:
        """Tag (may carry a 'v' prefix) preferred over the bare version."""
        return self.latest_tag or self.latest_version

    @classmethod
    def from_registry_json(cls, key: str, data: Dict[str, Any]) -> "RegistryEntry":
        """Build an entry from a registry record.

        Registry records have used two shapes over time (``nameWithOwner``/
        ``latestRelease``/``url`` and ``fullName``/``latestVersion``/``htmlUrl``),
        both are accepted.
        """
        full_name = data.get("fullName") or data.get("nameWithOwner") or key
        latest_version = data.get("latestVersion") or data.get("latestRelease")
        html_url = data.get("htmlUrl") or data.get("url") or f"{GITHUB_DOMAIN}{full_name}"

        return cls(
            full_name=full_name,
            latest_version=latest_version if isinstance(latest_version, str) else None,
            latest_tag=data.get("latestTag") if isinstance(data.get("latestTag"), str) else None,
            latest_release_url=data.get("latestReleaseUrl") or "",
            description=data.get("description") or "",
            html_url=html_url,
        )


@dataclass
class ExtensionUpdate:
    """An installed extension paired with a newer registry release"""

    name: str
    owner: str
    name_with_owner: str
    repository_name: str  # owner/repo used as the install source
    current_version: str
    latest_version: str
    manifest_path: str
    url: str = ""
    release_url: str = ""
    description: str = ""

    @property
    def install_source(self) -> str:
        return f"{self.repository_name}@{self.latest_version}"

    def __str__(self) -> str:
        return f"{self.name_with_owner}: {self.current_version} → {self.latest_version}"


@dataclass
class SkippedUpdate:
    """An update that was selected but could not be applied"""

    update: ExtensionUpdate
    reason: str


@dataclass
class ApplyResult:
    """Files touched by the installer plus the updates it had to skip"""

    modified_files: List[str] = field(default_factory=list)
    skipped_updates: List[SkippedUpdate] = field(default_factory=list)


@dataclass
class PRResult:
    """Outcome of processing one update group.

    ``number == 0`` means nothing changed and no PR exists for the group.
    """

    number: int
    url: str
    extensions: List[str] = field(default_factory=list)
    skipped_updates: List[SkippedUpdate] = field(default_factory=list)

    @property
    def created(self) -> bool:
        return self.number != 0


@dataclass(frozen=True)
class ExtensionFilterConfig:
    """Include/exclude lists of owner/name entries"""

    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class UpdatePolicy:
    """Which extensions and which magnitudes are in scope for a run"""

    update_strategy: UpdateStrategy = UpdateStrategy.ALL
    filter_config: ExtensionFilterConfig = field(default_factory=ExtensionFilterConfig)


@dataclass(frozen=True)
class AutoMergeConfig:
    """Auto-merge settings"""

    enabled: bool = False
    strategy: AutoMergeStrategy = AutoMergeStrategy.PATCH
    merge_method: MergeMethod = MergeMethod.SQUASH


@dataclass(frozen=True)
class PRAssignmentConfig:
    """Reviewers, team reviewers and assignees requested on each PR"""

    reviewers: List[str] = field(default_factory=list)
    team_reviewers: List[str] = field(default_factory=list)
    assignees: List[str] = field(default_factory=list)

    @property
    def has_reviewers(self) -> bool:
        return bool(self.reviewers or self.team_reviewers)

    @property
    def has_assignees(self) -> bool:
        return bool(self.assignees)


@dataclass(frozen=True)
class PRProcessingConfig:
    """Settings threaded through PR orchestration for one run"""

    workspace_path: str
    base_branch: str
    base_sha: str
    branch_prefix: str
    pr_title_prefix: str
    commit_message_prefix: str
    pr_labels: List[str] = field(default_factory=list)
    auto_merge: AutoMergeConfig = field(default_factory=AutoMergeConfig)
    assignment: PRAssignmentConfig = field(default_factory=PRAssignmentConfig)


@dataclass
class RunOutcome:
    """Counts and PRs reported back to the invoking shell"""

    updates: List[ExtensionUpdate] = field(default_factory=list)
    prs: List[PRResult] = field(default_factory=list)
    skipped_updates: List[SkippedUpdate] = field(default_factory=list)

    @property
    def updates_found(self) -> int:
        return len(self.updates)

    @property
    def updates_skipped(self) -> int:
        return len(self.skipped_updates)

    @property
    def updates_applied(self) -> int:
        # PRs reused via title match count as applied; their skip lists are empty
        applied = sum(len(pr.extensions) for pr in self.prs if pr.created)
        skipped_in_created = sum(len(pr.skipped_updates) for pr in self.prs if pr.created)
        return applied - skipped_in_created

    @property
    def first_pr(self) -> Optional[PRResult]:
        for pr in self.prs:
            if pr.created:
                return pr
        return None
