"""Source-control client.

Wraps the git executable and turns its diagnostic text into structured
results. The text matching lives in the ``classify_*`` functions so it can
be tested without a repository.
"""

from enum import Enum
from pathlib import Path
from typing import Protocol

from plugsmith.core.process import RunResult, run_command
from plugsmith.plugins.source import DEFAULT_DEDUPE_DEPTH, repo_key, source_dir

DETACHED_MARKERS = ("HEAD is now at", "detached HEAD")
MISSING_MARKERS = ("no such file or directory", "repository not found", "does not exist")


class CheckoutStatus(str, Enum):
    ALREADY_ON = "already_on"
    SWITCHED = "switched"
    # Pinned tag or commit; nothing to pull
    DETACHED = "detached"


class PullStatus(str, Enum):
    UP_TO_DATE = "up_to_date"
    CHANGED = "changed"


class GitError(Exception):
    """A git command failed; carries the raw diagnostic text."""

    def __init__(self, diagnostic: str):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.strip() or "git command failed")


class SourceControl(Protocol):
    """Operations the acquisition engine needs from a source-control client."""

    def exists(self, url: str) -> bool: ...

    def clone(self, url: str) -> None: ...

    def fetch_tags(self, url: str) -> None: ...

    def checkout(self, url: str, ref: str) -> CheckoutStatus: ...

    def pull(self, url: str) -> PullStatus: ...

    def directory(self, url: str) -> Path: ...


def is_missing_error(text: str) -> bool:
    """Whether a diagnostic says the target does not exist."""
    lowered = text.lower()
    return any(marker in lowered for marker in MISSING_MARKERS)


def classify_checkout(result: RunResult) -> CheckoutStatus:
    """Classify the outcome of ``git checkout <ref>``.

    Raises:
        GitError: If the checkout failed for an unrecognized reason
    """
    text = result.stderr + result.stdout
    if any(marker in text for marker in DETACHED_MARKERS):
        return CheckoutStatus.DETACHED
    if "Already on" in text:
        return CheckoutStatus.ALREADY_ON
    if "Switched to" in text:
        return CheckoutStatus.SWITCHED
    if not result.ok:
        raise GitError(result.diagnostic)
    return CheckoutStatus.SWITCHED if text.strip() else CheckoutStatus.ALREADY_ON


def classify_pull(result: RunResult) -> PullStatus:
    """Classify the outcome of ``git pull``.

    Raises:
        GitError: If the pull failed
    """
    if not result.ok:
        raise GitError(result.diagnostic)
    if "up to date" in result.stdout.lower():
        return PullStatus.UP_TO_DATE
    return PullStatus.CHANGED


class GitClient:
    """SourceControl implementation backed by the git executable."""

    def __init__(
        self,
        source_root: Path,
        git: str = "git",
        scheme: str = "https",
        depth: int = DEFAULT_DEDUPE_DEPTH,
    ):
        self.source_root = Path(source_root).expanduser()
        self.git = git
        self.scheme = scheme
        # Leading URL segments naming the repository; the rest is a sub-directory
        self.depth = depth

    def directory(self, url: str) -> Path:
        return source_dir(url, self.source_root, self.depth)

    def exists(self, url: str) -> bool:
        return self.directory(url).is_dir()

    def clone(self, url: str) -> None:
        target = self.directory(url)
        target.parent.mkdir(parents=True, exist_ok=True)
        remote = f"{self.scheme}://{repo_key(url, self.depth)}"
        result = run_command([self.git, "clone", "--quiet", remote, str(target)])
        if not result.ok:
            raise GitError(result.diagnostic)

    def fetch_tags(self, url: str) -> None:
        result = run_command(
            [self.git, "fetch", "--tags", "--force"], cwd=self.directory(url)
        )
        if not result.ok:
            raise GitError(result.diagnostic)

    def checkout(self, url: str, ref: str) -> CheckoutStatus:
        result = run_command([self.git, "checkout", ref], cwd=self.directory(url))
        return classify_checkout(result)

    def pull(self, url: str) -> PullStatus:
        result = run_command([self.git, "pull", "origin"], cwd=self.directory(url))
        return classify_pull(result)
