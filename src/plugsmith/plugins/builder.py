"""Build and test steps for a single plugin record."""

from plugsmith.core.errors import BuildError, PluginTestError
from plugsmith.plugins.record import PluginRecord, PluginState
from plugsmith.plugins.source import SourceKind
from plugsmith.plugins.toolchain import TestOutcome, Toolchain, ToolchainError


class Builder:
    """Runs the toolchain for one record at a time."""

    def __init__(self, toolchain: Toolchain):
        self.toolchain = toolchain

    def build(self, record: PluginRecord) -> None:
        """Build the record's archive.

        Prebuilt archives are used as-is.

        Raises:
            BuildError: If the toolchain reports any failure
        """
        if record.kind is SourceKind.LOCAL_ARTIFACT:
            record.advance(PluginState.BUILT)
            return

        out = record.out
        out.notification("Building...")
        try:
            self.toolchain.build(record.build_dir, record.artifact)
        except ToolchainError as e:
            out.error("Build failed")
            raise BuildError(record.alias, e.diagnostic) from e

        record.advance(PluginState.BUILT)
        out.success("Build complete!")

    def test(self, record: PluginRecord) -> TestOutcome | None:
        """Run the record's test suite.

        Skipped when the archive already exists and no update was requested.

        Returns:
            The test outcome, or None if skipped

        Raises:
            PluginTestError: If the tests fail
        """
        if record.kind is SourceKind.LOCAL_ARTIFACT:
            return None
        if record.artifact_exists() and not record.update:
            return None

        out = record.out
        try:
            outcome = self.toolchain.run_tests(record.build_dir)
        except ToolchainError as e:
            out.error("Test failed :(")
            raise PluginTestError(record.alias, e.diagnostic) from e

        if outcome is TestOutcome.PASSED:
            out.success("Test passed!")
        else:
            out.warning("No test files")

        record.advance(PluginState.TESTED)
        return outcome
