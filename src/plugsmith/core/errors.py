"""Structured error handling for plugsmith."""

import sys
import threading
from typing import Any, NoReturn

from plugsmith.models.error import ErrorCode, StructuredError


class PlugsmithError(Exception):
    """Base exception for plugsmith errors.

    Wraps a StructuredError for consistent error handling.
    """

    def __init__(
        self,
        code: str,
        message: str,
        remediation: str,
        retryable: bool = False,
        alias: str | None = None,
        phase: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.error = StructuredError(
            code=code,
            message=message,
            remediation=remediation,
            retryable=retryable,
            alias=alias,
            phase=phase,
            context=context,
        )
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def alias(self) -> str | None:
        return self.error.alias

    @property
    def phase(self) -> str | None:
        return self.error.phase

    def to_structured(self) -> StructuredError:
        """Convert to StructuredError."""
        return self.error

    def to_structured_error(self) -> dict:
        """Convert to JSON-serializable dict for output."""
        return self.error.model_dump(mode="json", exclude_none=True)


# Parse errors


class MalformedCallError(PlugsmithError):
    """Handler key with broken call syntax."""

    def __init__(self, handler_key: str, reason: str = "expected ending parenthesis"):
        super().__init__(
            code=ErrorCode.MALFORMED_CALL,
            message=f"Malformed handler call {handler_key!r}: {reason}",
            remediation="Use the form alias.Method or alias.Method(arg1,arg2)",
            context={"handler_key": handler_key},
        )


class UnsupportedSourceError(PlugsmithError):
    """Plugin key is neither a local path nor a repository reference."""

    def __init__(self, key: str, reason: str | None = None):
        message = f"Plugin type not supported: {key}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            code=ErrorCode.UNSUPPORTED_SOURCE,
            message=message,
            remediation="Use ./path/to/plugin.pyz, ./path/to/source or host/user/repo[@version|#branch]",
            context={"key": key},
        )


# Acquisition errors


class AcquisitionError(PlugsmithError):
    """Base for source-control and dependency failures."""

    def __init__(
        self,
        code: str,
        message: str,
        alias: str | None = None,
        diagnostic: str | None = None,
        retryable: bool = True,
    ):
        super().__init__(
            code=code,
            message=message,
            remediation="Check network access and the repository reference, then retry",
            retryable=retryable,
            alias=alias,
            phase="acquire",
            context={"diagnostic": diagnostic} if diagnostic else None,
        )


class CloneError(AcquisitionError):
    def __init__(self, url: str, diagnostic: str, alias: str | None = None):
        super().__init__(
            ErrorCode.CLONE_FAILED,
            f"Unable to fetch source for {url}: {diagnostic.strip()}",
            alias=alias,
            diagnostic=diagnostic,
        )


class ResolutionError(AcquisitionError):
    def __init__(self, url: str, ref: str, diagnostic: str, alias: str | None = None):
        super().__init__(
            ErrorCode.RESOLUTION_FAILED,
            f"Unable to check out {ref!r} for {url}: {diagnostic.strip()}",
            alias=alias,
            diagnostic=diagnostic,
            retryable=False,
        )


class SyncError(AcquisitionError):
    def __init__(self, url: str, diagnostic: str, alias: str | None = None):
        super().__init__(
            ErrorCode.SYNC_FAILED,
            f"Unable to pull latest changes for {url}: {diagnostic.strip()}",
            alias=alias,
            diagnostic=diagnostic,
        )


class DependencyError(AcquisitionError):
    def __init__(self, url: str, diagnostic: str, alias: str | None = None):
        super().__init__(
            ErrorCode.DEPENDENCY_FAILED,
            f"Failed to update dependencies for {url}: {diagnostic.strip()}",
            alias=alias,
            diagnostic=diagnostic,
        )


# Build / test / load errors


class BuildError(PlugsmithError):
    def __init__(self, alias: str, diagnostic: str):
        super().__init__(
            code=ErrorCode.BUILD_FAILED,
            message=f"{alias} failed to build: {diagnostic.strip()}",
            remediation="Fix the reported errors in the plugin source and rebuild",
            alias=alias,
            phase="build",
            context={"diagnostic": diagnostic},
        )


class PluginTestError(PlugsmithError):
    def __init__(self, alias: str, diagnostic: str = ""):
        super().__init__(
            code=ErrorCode.TEST_FAILED,
            message=f"{alias} failed test",
            remediation="Run the plugin test suite locally and fix the failures",
            alias=alias,
            phase="test",
            context={"diagnostic": diagnostic} if diagnostic else None,
        )


class LoadError(PlugsmithError):
    def __init__(self, message: str, alias: str | None = None, path: str | None = None):
        super().__init__(
            code=ErrorCode.LOAD_FAILED,
            message=message,
            remediation="Rebuild the plugin archive and check that it defines a plugin module",
            alias=alias,
            phase="load",
            context={"path": path} if path else None,
        )


class CloseError(PlugsmithError):
    def __init__(self, alias: str, path: str, cause: BaseException):
        super().__init__(
            code=ErrorCode.CLOSE_FAILED,
            message=f"error closing {alias} ({path}): {cause}",
            remediation="Check the plugin's Close implementation",
            alias=alias,
            phase="close",
            context={"path": path, "type": type(cause).__name__},
        )


class PluginCallError(PlugsmithError):
    """A plugin lifecycle function reported an error."""

    def __init__(self, alias: str, phase: str, cause: BaseException):
        super().__init__(
            code=ErrorCode.PLUGIN_CALL_FAILED,
            message=f"{alias} failed during {phase}: {cause}",
            remediation="Check the plugin configuration and its dependencies",
            alias=alias,
            phase=phase,
            context={"type": type(cause).__name__},
        )


# Lookup / binding errors


class SymbolNotFoundError(PlugsmithError):
    def __init__(self, name: str, alias: str | None = None):
        super().__init__(
            code=ErrorCode.SYMBOL_NOT_FOUND,
            message=f"key of <{name}> was not found within this plugin",
            remediation="Check the exported names of the plugin module",
            alias=alias,
            context={"symbol": name},
        )


class NotWritableError(PlugsmithError):
    def __init__(self, destination: Any):
        super().__init__(
            code=ErrorCode.NOT_WRITABLE,
            message="provided backend destination must be writable",
            remediation="Pass a plugsmith Slot as the destination",
            context={"type": type(destination).__name__},
        )


class TypeMismatchError(PlugsmithError):
    def __init__(self, expected: Any, received: Any):
        expected_name = getattr(expected, "__qualname__", repr(expected))
        received_name = getattr(received, "__qualname__", repr(received))
        super().__init__(
            code=ErrorCode.TYPE_MISMATCH,
            message=f"invalid type, expected {expected_name} and received {received_name}",
            remediation="Declare the slot with the backend's type or a protocol it satisfies",
            context={"expected": expected_name, "received": received_name},
        )


# Lifecycle errors


class InvalidDirError(PlugsmithError):
    def __init__(self):
        super().__init__(
            code=ErrorCode.INVALID_DIR,
            message="invalid directory, cannot be empty",
            remediation="Provide the directory plugin archives are written to",
        )


class DuplicateAliasError(PlugsmithError):
    def __init__(self, alias: str, key: str):
        super().__init__(
            code=ErrorCode.DUPLICATE_ALIAS,
            message=f"plugin cannot be added, key already exists: {alias}",
            remediation="Give one of the plugins an explicit alias with '<key> as <alias>'",
            alias=alias,
            context={"key": key},
        )


class PluginNotLoadedError(PlugsmithError):
    def __init__(self, alias: str):
        super().__init__(
            code=ErrorCode.PLUGIN_NOT_LOADED,
            message=f"Cannot find plugin {alias}: plugin with that key has not been loaded",
            remediation="Register the plugin and run initialize() before using it",
            alias=alias,
        )


class RegistryClosedError(PlugsmithError):
    def __init__(self):
        super().__init__(
            code=ErrorCode.REGISTRY_CLOSED,
            message="plugin registry is closed",
            remediation="Create a new Registry",
        )


class ConfigError(PlugsmithError):
    def __init__(self, message: str, path: str | None = None):
        super().__init__(
            code=ErrorCode.CONFIG_ERROR,
            message=message,
            remediation="Fix the configuration file and try again",
            context={"path": path} if path else None,
        )


class AggregateError(PlugsmithError):
    """Several independent failures collected from one batch."""

    def __init__(self, errors: list[BaseException]):
        self.errors = list(errors)
        lines = [str(e) for e in self.errors]
        super().__init__(
            code=ErrorCode.MULTIPLE_ERRORS,
            message="the following errors occurred:\n" + "\n".join(lines),
            remediation="Fix each listed failure",
            context={"count": len(self.errors), "errors": lines},
        )


class ErrorList:
    """Thread-safe collector of errors from concurrent tasks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._errors: list[BaseException] = []

    def push(self, err: BaseException | None) -> None:
        """Record an error; None is ignored."""
        if err is None:
            return
        with self._lock:
            self._errors.append(err)

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)

    @property
    def errors(self) -> list[BaseException]:
        with self._lock:
            return list(self._errors)

    def err(self) -> AggregateError | None:
        """Return None when empty, otherwise an AggregateError of everything pushed."""
        errors = self.errors
        if not errors:
            return None
        return AggregateError(errors)


def handle_error(error: PlugsmithError | Exception, exit_code: int = 1) -> NoReturn:
    """Handle an error by outputting it and exiting.

    Args:
        error: The error to handle
        exit_code: Exit code to use
    """
    from plugsmith.cli.output import output_error

    if isinstance(error, PlugsmithError):
        output_error(error.to_structured())
    else:
        structured = StructuredError(
            code=ErrorCode.INTERNAL_ERROR,
            message=str(error),
            remediation="This is an unexpected error. Please report it.",
            retryable=False,
            context={"type": type(error).__name__},
        )
        output_error(structured)

    sys.exit(exit_code)
