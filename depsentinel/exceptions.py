"""Custom exceptions for depsentinel."""

from __future__ import annotations

from typing import Literal

ErrorKind = Literal["transient", "unresolvable", "auth", "other"]


class DepSentinelError(Exception):
    """Base exception for all depsentinel errors."""


class DependencyFileNotFound(DepSentinelError):
    """Raised when a requirement names a file missing from the given file set."""

    def __init__(self, file_name: str, message: str | None = None):
        self.file_name = file_name
        super().__init__(message or f"No file found with name {file_name}!")


class PrivateSourceAuthenticationFailure(DepSentinelError):
    """Raised when a private registry or git host rejects our credentials."""

    def __init__(self, host: str):
        self.host = host
        super().__init__(f"The following source could not be reached as it requires authentication: {host}")


class DependencyNotResolvable(DepSentinelError):
    """Raised when the catalog or host says the dependency cannot be reached."""

    def __init__(self, dependency_name: str, hosts: list[str] | None = None):
        self.dependency_name = dependency_name
        self.hosts = list(hosts or [])
        where = f" (credentials configured for: {', '.join(self.hosts)})" if self.hosts else ""
        super().__init__(f"Cannot resolve {dependency_name}{where}")


class AllVersionsIgnored(DepSentinelError):
    """Raised when every upgrade candidate was excluded by an ignore range."""

    def __init__(self, dependency_name: str):
        self.dependency_name = dependency_name
        super().__init__(f"All updates for {dependency_name} were ignored")


class AmbiguousDeclaration(DepSentinelError):
    """Raised when a declaration lookup matches zero or several spans."""

    def __init__(self, dependency_name: str, file_name: str | None, match_count: int):
        self.dependency_name = dependency_name
        self.file_name = file_name
        self.match_count = match_count
        where = f" in {file_name}" if file_name else ""
        super().__init__(
            f"Expected exactly one declaration of {dependency_name}{where}, "
            f"found {match_count}"
        )


class NoChangeDetected(DepSentinelError):
    """Raised when a patch leaves content identical, or no file changed at all."""

    def __init__(self, file_name: str | None = None):
        self.file_name = file_name
        super().__init__(
            f"Content didn't change in {file_name}!" if file_name else "No files changed!"
        )


class CatalogError(DepSentinelError):
    """A classified failure from a network or process collaborator.

    ``kind`` drives handling: ``transient`` failures are retried once,
    ``unresolvable`` becomes :class:`DependencyNotResolvable`, ``auth``
    becomes :class:`PrivateSourceAuthenticationFailure`. ``cause`` holds
    the underlying exception. A transient failure that outlives its
    retries is re-raised with kind ``other``.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        host: str | None = None,
        status: int | None = None,
        cause: BaseException | None = None,
    ):
        self.kind = kind
        self.host = host
        self.status = status
        self.cause = cause
        super().__init__(message)


class TransientNetworkFailure(CatalogError):
    """Connection reset, timeout or 5xx. Retried internally, never surfaced."""

    def __init__(self, message: str, *, host: str | None = None, status: int | None = None,
                 cause: BaseException | None = None):
        super().__init__("transient", message, host=host, status=status, cause=cause)


class ResolverFailure(DepSentinelError):
    """Raised when an external resolver or lock tool exits with an error."""

    def __init__(self, dependency_name: str, command: str, detail: str):
        self.dependency_name = dependency_name
        self.command = command
        self.detail = detail
        super().__init__(f"{command} failed for {dependency_name}: {detail}")
