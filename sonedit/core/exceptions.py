"""
Custom exceptions for the sonedit audio editor.
"""


class SonEditError(Exception):
    """Base exception for all sonedit errors."""

    def __init__(self, message: str, code: str = "SONEDIT_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class InvalidRange(SonEditError):
    """Selection or extraction bounds are negative or inverted."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_RANGE")


class InvalidParameter(SonEditError):
    """Effect or generator parameter is unknown, missing or out of range."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_PARAMETER")


class UnsupportedFormat(SonEditError):
    """Export format is not in the allow-list."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="UNSUPPORTED_FORMAT")


class DeviceUnavailable(SonEditError):
    """No audio input device, or permission to use it was denied."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DEVICE_UNAVAILABLE")


class AlreadyCapturing(SonEditError):
    """A capture session is already running."""

    def __init__(self, message: str = "Capture already in progress") -> None:
        super().__init__(message, code="ALREADY_CAPTURING")


class CaptureError(SonEditError):
    """Captured chunks could not be assembled into a buffer."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CAPTURE_ERROR")


class TrackNotFound(SonEditError):
    """Operation references a track id that is not live."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="TRACK_NOT_FOUND")


class EffectNotFound(SonEditError):
    """Operation references an effect id that is not on the track."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="EFFECT_NOT_FOUND")


class DecodeFailure(SonEditError):
    """Input audio is malformed or cannot be decoded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DECODE_FAILURE")
