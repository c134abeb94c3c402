"""Template resolver: validates, parses and fetches template identifiers."""

from create_scaffold.resolver.metadata import MANIFEST_FILE, load_template_metadata
from create_scaffold.resolver.parser import parse_identifier, validate_identifier
from create_scaffold.resolver.resolver import ResolvedTemplate, TemplateResolver
from create_scaffold.resolver.sources import (
    GitHubBranchSource,
    GitHubRepoSource,
    GitHubShorthandSource,
    LocalSource,
    RegistrySource,
    ResolvedSource,
    UnsupportedArchiveSource,
    UnsupportedTarballSource,
    UrlSource,
)

__all__ = [
    "GitHubBranchSource",
    "GitHubRepoSource",
    "GitHubShorthandSource",
    "LocalSource",
    "MANIFEST_FILE",
    "RegistrySource",
    "ResolvedSource",
    "ResolvedTemplate",
    "TemplateResolver",
    "UnsupportedArchiveSource",
    "UnsupportedTarballSource",
    "UrlSource",
    "load_template_metadata",
    "parse_identifier",
    "validate_identifier",
]
