"""Source classification and path derivation for plugin keys."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from plugsmith.core.errors import UnsupportedSourceError

ARTIFACT_EXTENSION = ".pyz"
LOCAL_MARKER = "./"
DEFAULT_DEDUPE_DEPTH = 3


class SourceKind(str, Enum):
    """Where a plugin comes from."""

    LOCAL_ARTIFACT = "local_artifact"
    LOCAL_SOURCE = "local_source"
    REPOSITORY = "repository"

    @property
    def is_local(self) -> bool:
        return self is not SourceKind.REPOSITORY


@dataclass(frozen=True)
class LocalArtifact:
    """A prebuilt plugin archive used verbatim."""

    path: str

    kind = SourceKind.LOCAL_ARTIFACT


@dataclass(frozen=True)
class LocalSource:
    """A plugin source directory on the local filesystem."""

    path: str

    kind = SourceKind.LOCAL_SOURCE


@dataclass(frozen=True)
class RepoRef:
    """A plugin hosted in a git repository."""

    host: str
    user: str
    repo: str
    subpath: tuple[str, ...] = ()
    version: str = ""
    branch: str = ""

    kind = SourceKind.REPOSITORY

    @property
    def url(self) -> str:
        """Repository URL without version or branch markers."""
        return "/".join((self.host, self.user, self.repo, *self.subpath))

    @property
    def ref(self) -> str:
        """The version if pinned, otherwise the branch (may be empty)."""
        return self.version or self.branch


Source = LocalArtifact | LocalSource | RepoRef


def classify_source(key: str) -> Source:
    """Classify a plugin source (the key without its alias).

    Raises:
        UnsupportedSourceError: If the key is neither a local path nor a repository reference
    """
    if not key or any(c.isspace() for c in key):
        raise UnsupportedSourceError(key, "empty or contains whitespace")

    if key.endswith(ARTIFACT_EXTENSION):
        return LocalArtifact(path=key)

    if key.startswith(LOCAL_MARKER):
        return LocalSource(path=key)

    return parse_repo_ref(key)


def parse_repo_ref(key: str) -> RepoRef:
    """Parse ``host/user/repo[/subdir...][@version|#branch]``."""
    # The version is everything after the first "@"
    url_part, _, version = key.partition("@")
    try:
        parts = urlsplit("http://" + url_part)
        host = parts.hostname
    except ValueError as e:
        raise UnsupportedSourceError(key, str(e))

    if not host:
        raise UnsupportedSourceError(key, "missing host")

    segments = [s for s in parts.path.split("/") if s]
    if len(segments) < 2:
        raise UnsupportedSourceError(key, "expected host/user/repo")

    # Branch is only consulted when no version is pinned
    branch = "" if version else parts.fragment
    return RepoRef(
        host=parts.netloc,
        user=segments[0],
        repo=segments[1],
        subpath=tuple(segments[2:]),
        version=version,
        branch=branch,
    )


def strip_ref(key: str) -> str:
    """Remove the "#branch" and "@version" markers from a repository key."""
    return key.split("#")[0].split("@")[0]


def repo_key(url: str, depth: int = DEFAULT_DEDUPE_DEPTH) -> str:
    """Truncate a nested plugin source to the repository that needs updating."""
    comps = url.split("/")
    if len(comps) > depth:
        return "/".join(comps[:depth])
    return url


def is_local(url: str) -> bool:
    return url.startswith(LOCAL_MARKER)


def source_dir(url: str, source_root: Path, depth: int = DEFAULT_DEDUPE_DEPTH) -> Path:
    """Directory holding the git clone for a repository URL."""
    if is_local(url):
        return Path(url)
    return Path(source_root, *PurePosixPath(repo_key(url, depth)).parts)


def build_dir(url: str, source_root: Path) -> Path:
    """Directory the plugin is built and tested in (clone dir plus sub-directory)."""
    if is_local(url):
        return Path(url)
    return Path(source_root, *PurePosixPath(url).parts)


def artifact_path(directory: Path, alias: str) -> Path:
    """Computed archive location for a non-local plugin."""
    return Path(directory) / f"{alias}{ARTIFACT_EXTENSION}"


def artifact_stem(path: str) -> str:
    """Alias for a local archive: file name up to the first dot."""
    return Path(path).name.split(".")[0]
