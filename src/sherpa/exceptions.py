from dataclasses import dataclass


@dataclass(frozen=True)
class SherpaError(Exception):
    """Base exception for errors raised by sherpa."""

    def __str__(self) -> str:
        return self.__doc__ or type(self).__name__


@dataclass(frozen=True)
class ConfigValidationError(SherpaError):
    """Raised when the configuration is invalid."""

    message: str

    def __str__(self) -> str:
        return f"configuration validation failed: {self.message}"


@dataclass(frozen=True)
class RepositoryParseError(SherpaError):
    """Raised when a repository identifier cannot be parsed."""

    value: str
    message: str

    def __str__(self) -> str:
        return f"failed to parse repository '{self.value}': {self.message}"


@dataclass(frozen=True)
class TokenNotFoundError(SherpaError):
    """Raised when no access token is available for a platform."""

    platform: str
    env_var: str

    def __str__(self) -> str:
        return (
            f"{self.platform} token not found. "
            f"Set {self.env_var} environment variable or use --token flag"
        )


@dataclass(frozen=True)
class ProviderError(SherpaError):
    """Raised when a provider cannot be constructed."""

    platform: str
    message: str

    def __str__(self) -> str:
        return f"failed to create provider for {self.platform}: {self.message}"


@dataclass(frozen=True)
class AuthenticationError(SherpaError):
    """Raised when the connection test against a backend fails."""

    platform: str
    message: str

    def __str__(self) -> str:
        return f"failed to authenticate with {self.platform}: {self.message}"


@dataclass(frozen=True)
class RepositoryNotFoundError(SherpaError):
    """Raised when repository metadata cannot be obtained."""

    repository: str
    message: str = ""

    def __str__(self) -> str:
        return f"failed to get repository info for {self.repository}: {self.message}"


@dataclass(frozen=True)
class TreeFetchError(SherpaError):
    """Raised when the repository tree listing cannot be obtained."""

    repository: str
    message: str = ""

    def __str__(self) -> str:
        return f"failed to get repository tree for {self.repository}: {self.message}"


@dataclass(frozen=True)
class InvalidPathError(SherpaError):
    """Raised when a requested path escapes the repository root."""

    path: str
    message: str = "invalid file path"

    def __str__(self) -> str:
        return f"{self.message}: {self.path}"


@dataclass(frozen=True)
class FileNotFoundInRepositoryError(SherpaError):
    """Raised when a requested file does not exist in the repository."""

    path: str

    def __str__(self) -> str:
        return f"file not found: {self.path}"


@dataclass(frozen=True)
class BinaryFileError(SherpaError):
    """Raised when text content is requested for a binary file."""

    path: str

    def __str__(self) -> str:
        return f"file is binary: {self.path}"


@dataclass(frozen=True)
class FileFetchError(SherpaError):
    """Raised when a single file cannot be fetched."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"failed to fetch file {self.path}: {self.message}"


@dataclass(frozen=True)
class TooManyFilesError(SherpaError):
    """Raised when a batch requests more files than allowed."""

    requested: int
    limit: int

    def __str__(self) -> str:
        return f"too many files to process safely: {self.requested} (max: {self.limit})"


@dataclass(frozen=True)
class MemoryLimitExceededError(SherpaError):
    """Raised when the estimated memory of a batch exceeds the ceiling."""

    requested: int
    estimated_bytes: int
    limit_bytes: int

    def __str__(self) -> str:
        return (
            f"estimated memory usage too high for {self.requested} files "
            f"({self.estimated_bytes} > {self.limit_bytes} bytes)"
        )


@dataclass(frozen=True)
class RateLimitError(SherpaError):
    """Raised when a backend reports that the rate limit is exhausted."""

    message: str

    def __str__(self) -> str:
        return f"rate limit exceeded: {self.message}"


@dataclass(frozen=True)
class TransientNetworkError(SherpaError):
    """Raised for network failures that are worth retrying."""

    message: str

    def __str__(self) -> str:
        return f"temporary network failure: {self.message}"


@dataclass(frozen=True)
class OperationCancelledError(SherpaError):
    """Raised when the run was cancelled before the work could complete."""

    def __str__(self) -> str:
        return "operation cancelled"


@dataclass(frozen=True)
class OutputTooLargeError(SherpaError):
    """Raised when the files selected for output exceed the total size cap."""

    total_size: str
    limit: str

    def __str__(self) -> str:
        return f"total file size exceeds limit ({self.total_size} > {self.limit})"


@dataclass(frozen=True)
class OutputDirectoryError(SherpaError):
    """Raised when the output directory cannot be created."""

    directory: str
    message: str

    def __str__(self) -> str:
        return f"failed to create output directory {self.directory}: {self.message}"


@dataclass(frozen=True)
class OutputWriteError(SherpaError):
    """Raised when an output file cannot be written."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"failed to write {self.path}: {self.message}"
