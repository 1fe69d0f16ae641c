from __future__ import annotations


class BlockrepoError(Exception):
    pass


class SpecifierUnrecognized(BlockrepoError, ValueError):
    def __init__(self, specifier: str, *, providers: tuple[str, ...] = ()):
        self.specifier = specifier
        message = f"Unrecognized registry specifier: {specifier}"
        if providers:
            message = f"{message} (valid providers: {', '.join(providers)})"
        super().__init__(message)


class ProviderError(BlockrepoError):
    """Failure talking to a hosting platform."""

    def __init__(self, message: str, *, url: str | None = None):
        self.url = url
        if url:
            message = f"{message}: {url}"
        super().__init__(message)


class AuthRequired(ProviderError):
    pass


class AuthFailed(ProviderError):
    pass


class NotFound(ProviderError):
    pass


class ManifestNotFound(NotFound):
    pass


class BlockNotFound(NotFound):
    def __init__(self, specifier: str):
        self.specifier = specifier
        super().__init__(f"Invalid block! {specifier} does not exist")


class RateLimited(ProviderError):
    pass


class NetworkError(ProviderError):
    pass


class ManifestInvalid(BlockrepoError, ValueError):
    def __init__(self, reason: str, *, source: str | None = None):
        self.reason = reason
        self.source = source
        message = f"Invalid manifest: {reason}"
        if source:
            message = f"{message} ({source})"
        super().__init__(message)


class MissingDependency(BlockrepoError):
    def __init__(self, referencer: str, target: str):
        self.referencer = referencer
        self.target = target
        super().__init__(
            f"{referencer} depends on local dependency {target} which doesn't exist"
        )


class CircularDependency(BlockrepoError):
    def __init__(self, chain: list[str]):
        self.chain = list(chain)
        super().__init__(f"Circular dependency detected: {' -> '.join(self.chain)}")


class ReadFailure(BlockrepoError):
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to read {path}: {reason}")


class WriteFailure(BlockrepoError):
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write {path}: {reason}")


class ConfigError(BlockrepoError, ValueError):
    pass


class InstallFailed(BlockrepoError):
    pass


class RewriteFailed(BlockrepoError):
    pass


class Cancelled(BlockrepoError):
    def __init__(self, message: str = "Canceled!"):
        super().__init__(message)
