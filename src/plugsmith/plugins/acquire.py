"""Acquisition engine: keeps a plugin's repository clone in sync.

For one repository the sequence is:

1. clone it if there is no local copy;
2. if a branch or version is targeted, check it out (falling back to
   fetching tags and retrying once). A pinned tag or commit leaves HEAD
   detached, which ends the sequence after a dependency refresh;
3. pull the latest changes and refresh dependencies if anything changed.
"""

from plugsmith.core.errors import (
    CloneError,
    DependencyError,
    ResolutionError,
    SyncError,
)
from plugsmith.core.logging import Scribe
from plugsmith.plugins.record import PluginRecord, PluginState
from plugsmith.plugins.toolchain import Toolchain, ToolchainError
from plugsmith.plugins.vcs import (
    CheckoutStatus,
    GitError,
    PullStatus,
    SourceControl,
    is_missing_error,
)


class Acquirer:
    """Drives a SourceControl client and toolchain for repository records."""

    def __init__(self, vcs: SourceControl, toolchain: Toolchain):
        self.vcs = vcs
        self.toolchain = toolchain

    def update(self, record: PluginRecord, branch: str = "") -> None:
        """Fetch and synchronize the repository behind ``record``.

        Args:
            record: Repository record to update
            branch: Registry-wide override for the record's branch or version

        Raises:
            CloneError, ResolutionError, SyncError, DependencyError
        """
        if record.kind.is_local:
            return

        out = record.out
        url = record.url
        if not self.ensure_fetched(url, out, alias=record.alias):
            return

        ref = branch or record.ref
        if ref:
            out.notification(f'Updating "{ref}" branch...')
            if not self.resolve_target(url, ref, out, alias=record.alias):
                record.advance(PluginState.ACQUIRED)
                return
        else:
            out.notification("Updating current branch...")

        self.sync(url, ref, out, alias=record.alias)
        record.advance(PluginState.ACQUIRED)

    def ensure_fetched(self, url: str, out: Scribe, alias: str | None = None) -> bool:
        """Clone the repository if it is missing.

        Returns:
            False if the remote does not exist and the remaining steps should be skipped
        """
        if self.vcs.exists(url):
            return True

        out.notification("Source does not exist, fetching...")
        try:
            self.vcs.clone(url)
        except GitError as e:
            if is_missing_error(e.diagnostic):
                out.warning(f"warning: unable to fetch source: {e}")
                return False
            raise CloneError(url, e.diagnostic, alias=alias) from e
        return True

    def resolve_target(self, url: str, ref: str, out: Scribe, alias: str | None = None) -> bool:
        """Check out ``ref``.

        Returns:
            True if a pull should follow, False for a pinned (detached) version

        Raises:
            ResolutionError: If the ref cannot be checked out even after fetching tags
        """
        try:
            status = self._checkout(url, ref, out)
        except GitError:
            out.notification("Target branch not found, fetching version tags...")
            try:
                self.vcs.fetch_tags(url)
            except GitError as e:
                out.error("Unable to fetch tags.")
                raise ResolutionError(url, ref, e.diagnostic, alias=alias) from e

            try:
                status = self._checkout(url, ref, out)
            except GitError as e:
                raise ResolutionError(url, ref, e.diagnostic, alias=alias) from e

        if status is CheckoutStatus.DETACHED:
            out.notification(f"Set version: {ref}")
            # No need to pull a pinned version
            self.refresh_dependencies(url, out, alias=alias)
            return False

        return True

    def _checkout(self, url: str, ref: str, out: Scribe) -> CheckoutStatus:
        status = self.vcs.checkout(url, ref)
        if status is CheckoutStatus.SWITCHED:
            out.notification(f'Switched to "{ref}" branch.')
        return status

    def sync(self, url: str, ref: str, out: Scribe, alias: str | None = None) -> None:
        """Pull the latest changes and refresh dependencies when something changed.

        Raises:
            SyncError: If the pull fails
        """
        try:
            status = self.vcs.pull(url)
        except GitError as e:
            raise SyncError(url, e.diagnostic, alias=alias) from e

        if status is PullStatus.UP_TO_DATE:
            out.success("Already up to date.")
            return

        if ref:
            out.notification(f'Pulled latest "{ref}" branch.')
        else:
            out.notification("Pulled latest commits.")

        self.refresh_dependencies(url, out, alias=alias)

    def refresh_dependencies(self, url: str, out: Scribe, alias: str | None = None) -> None:
        """Raises DependencyError if the toolchain dependency step fails."""
        out.notification("Downloading dependencies...")
        try:
            self.toolchain.download_dependencies(self.vcs.directory(url))
        except ToolchainError as e:
            out.error(f"Failed to update dependencies {e}")
            raise DependencyError(url, e.diagnostic, alias=alias) from e

        out.success("Dependencies updated!")
