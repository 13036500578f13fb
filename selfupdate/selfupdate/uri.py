"""Repository URI normalization.

Git remotes come in several shapes (SSH shorthand, git protocol, provider
specific SSH paths, HTTPS). Everything the engine compares or sends to a
provider goes through :func:`normalise_uri` first, which maps all of them to
one canonical HTTPS form without the ``.git`` suffix.
"""

from __future__ import annotations

import re
from urllib.parse import SplitResult, urlsplit

PROVIDER_GITHUB = "github.com"
PROVIDER_AZURE_DEVOPS = "dev.azure.com"
PROVIDER_UNKNOWN = "unknown Git provider"

# Hostname substring -> provider short name. Order matters for matching.
PROVIDERS: dict[str, str] = {
    PROVIDER_GITHUB: "github",
    PROVIDER_AZURE_DEVOPS: "azure-devops",
}

_GIT_EXTENSION = re.compile(r"\.git$")
_AZURE_SSH_VERSION = re.compile(r":v\d+")
_SCP_LIKE = re.compile(r"^(?P<user>[\w.-]+)@(?P<host>[^:/]+):(?P<path>.+)$")
_SSH_SCHEME = re.compile(r"^ssh://(?:[^@/]+@)?(?P<host>[^:/]+)(?::\d+)?/(?P<path>.+)$")


def provider(uri: str) -> str:
    """Return the hosting provider of ``uri``.

    Returns:
        One of the keys of :data:`PROVIDERS`, or :data:`PROVIDER_UNKNOWN`.
    """
    for hostname in PROVIDERS:
        if hostname in uri:
            return hostname
    return PROVIDER_UNKNOWN


def normalise_uri(uri: str) -> str:
    """Convert a repository URI into its canonical HTTPS form.

    The transform is pure and idempotent.

    Examples:
        >>> normalise_uri("git@github.com:test/some-repo.git")
        'https://github.com/test/some-repo'
        >>> normalise_uri("git@ssh.dev.azure.com:v3/PROJECT/test/some-repo")
        'https://dev.azure.com/PROJECT/test/_git/some-repo'
    """
    uri = uri.strip()

    if provider(uri) == PROVIDER_AZURE_DEVOPS:
        uri = _normalise_azure_devops_uri(uri)
    else:
        uri = _normalise_github_like_uri(uri)

    return _GIT_EXTENSION.sub("", uri)


def _normalise_github_like_uri(uri: str) -> str:
    scp = _SCP_LIKE.match(uri)
    if scp:
        return f"https://{scp.group('host')}/{scp.group('path')}"

    ssh = _SSH_SCHEME.match(uri)
    if ssh:
        return f"https://{ssh.group('host')}/{ssh.group('path')}"

    if uri.startswith("git://"):
        return "https://" + uri[len("git://") :]

    return uri


def _normalise_azure_devops_uri(uri: str) -> str:
    if "git@ssh." not in uri:
        return uri

    uri = _AZURE_SSH_VERSION.sub("", uri, count=1)
    uri = uri.replace("git@ssh.", "https://", 1)
    # ssh paths lack the "_git" segment the HTTPS form has before the repository
    head, _, repository = uri.rpartition("/")
    return f"{head}/_git/{repository}"


def parse_uri(uri: str) -> SplitResult:
    """Normalize and split a repository URI.

    Raises:
        ValueError: If the normalized URI has no hostname.
    """
    normalised = normalise_uri(uri)
    parsed = urlsplit(normalised)
    if not parsed.hostname:
        raise ValueError(f"failed to parse git uri {normalised!r}: no hostname")
    return parsed


def _path_parts(uri: str) -> list[str]:
    return parse_uri(uri).path.split("/")


def owner_and_repository(uri: str) -> tuple[str, str]:
    """Extract the owner (organisation) and repository name.

    Raises:
        ValueError: If the URI path is too short for its provider.
    """
    parts = _path_parts(uri)
    try:
        if provider(uri) == PROVIDER_AZURE_DEVOPS:
            return parts[1], parts[4]
        return parts[1], parts[2]
    except IndexError:
        raise ValueError(f"cannot extract owner and repository from {uri!r}") from None


def owner(uri: str) -> str:
    """Return the owner (organisation) part of ``uri``."""
    return owner_and_repository(uri)[0]


def repository_name(uri: str) -> str:
    """Return the last path component of ``uri``."""
    return _path_parts(uri)[-1]


def repository_signature(uri: str) -> str:
    """Return ``host/path`` of ``uri``, without scheme or userinfo."""
    parsed = parse_uri(uri)
    host = parsed.hostname or ""
    if parsed.port:
        host = f"{host}:{parsed.port}"
    return f"{host}{parsed.path}"
