"""Custom exceptions for better error handling patterns"""


class AudioExtractionError(Exception):
    """Base exception for track extraction errors"""


class ValidationError(AudioExtractionError):
    """Exception for input validation errors"""


class AssetInfoError(AudioExtractionError):
    """Exception for metadata resolution failures"""


class WindowFetchError(AudioExtractionError):
    """Exception for a single window that could not be fetched"""


class SegmentPathExhaustedError(AudioExtractionError):
    """Raised when no planned window could be fetched"""


class FullFetchError(AudioExtractionError):
    """Exception for full-asset download or local split failures"""


class RecognitionError(AudioExtractionError):
    """Base exception for per-window recognition failures"""


class RecognitionAuthError(RecognitionError):
    """Exception for rejected or missing recognizer credentials"""


class RecognitionTimeoutError(RecognitionError):
    """Exception for recognition calls exceeding their timeout"""


class PayloadSizeError(RecognitionError):
    """Exception for audio payloads outside the accepted size range"""


class NoMatchError(RecognitionError):
    """Exception for clips the recognizer could not match"""


class MalformedResponseError(RecognitionError):
    """Exception for unparseable recognizer responses"""


class ArtifactError(AudioExtractionError):
    """Exception for artifact storage failures"""


class ArtifactAccessError(ArtifactError):
    """Exception for artifact paths escaping the artifact root"""
