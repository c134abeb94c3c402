"""Canonical forms of a template identifier after parsing.

Exactly one variant is produced per resolve call; the variants are plain
frozen dataclasses discriminated by their class (and a ``kind`` tag for
logging and serialisation).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Union


@dataclass(frozen=True)
class LocalSource:
    kind: ClassVar[str] = "local"
    path: str


@dataclass(frozen=True)
class GitHubShorthandSource:
    """``owner/repo[#branch[/sub/path]]``."""

    kind: ClassVar[str] = "github-shorthand"
    owner: str
    repo: str
    branch: str | None = None
    subpath: str = ""

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class GitHubRepoSource:
    kind: ClassVar[str] = "github-repo"
    owner: str
    repo: str
    subpath: str = ""

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class GitHubBranchSource:
    """``https://github.com/owner/repo/tree/<branch>/<path>``."""

    kind: ClassVar[str] = "github-branch"
    owner: str
    repo: str
    branch: str
    subpath: str = ""

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class RegistrySource:
    kind: ClassVar[str] = "registry"
    namespace: str
    template: str


@dataclass(frozen=True)
class UrlSource:
    kind: ClassVar[str] = "url"
    url: str
    query: dict[str, str] = field(default_factory=dict, hash=False, compare=True)
    branch: str | None = None
    subpath: str = ""


@dataclass(frozen=True)
class UnsupportedArchiveSource:
    kind: ClassVar[str] = "github-archive"
    url: str


@dataclass(frozen=True)
class UnsupportedTarballSource:
    kind: ClassVar[str] = "tarball"
    url: str


GitHubSource = Union[GitHubShorthandSource, GitHubRepoSource, GitHubBranchSource]

ResolvedSource = Union[
    LocalSource,
    GitHubShorthandSource,
    GitHubRepoSource,
    GitHubBranchSource,
    RegistrySource,
    UrlSource,
    UnsupportedArchiveSource,
    UnsupportedTarballSource,
]
