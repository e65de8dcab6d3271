"""Error taxonomy shared by the share, stream, and monitor layers."""


class RtbackupError(Exception):
    """Base class for rtbackup errors."""


class ConfigError(RtbackupError):
    """A monitor configuration is missing or invalid."""


class ShareError(RtbackupError):
    """A remote share could not be mounted or released.

    Attributes:
        address: UNC address the operation targeted.
        detail: Platform output or error code, if any.
    """

    def __init__(self, address: str, detail: str | None = None):
        self.address = address
        self.detail = detail
        message = f"{self.summary}: {address}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)

    summary = "share operation failed"


class AuthenticationError(ShareError):
    summary = "credential rejected"


class NetworkUnreachable(ShareError):
    summary = "host unreachable or share missing"


class AlreadyMounted(ShareError):
    summary = "a connection to this target already exists"


class MountNotFound(ShareError):
    summary = "no connection to release"


class StreamSubscriptionFailure(RtbackupError):
    """Subscribing to a change stream failed."""
