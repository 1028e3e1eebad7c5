"""Exception hierarchy shared by the account, catalog and chunk store layers."""


class ClassReelException(Exception):
    """
    Base exception class for all ClassReel errors.

    Every subclass carries a stable ``code`` that the HTTP layer reports
    alongside the human-readable message.
    """
    code = "INTERNAL_ERROR"


class DuplicateEmailError(ClassReelException):
    """
    Raised when registering an email that already belongs to an account.
    """
    code = "DUPLICATE_EMAIL"


class InvalidLicenseKeyError(ClassReelException):
    """
    Raised when a license key is unknown or not valid for the account type.
    """
    code = "INVALID_LICENSE_KEY"


class QuotaExceededError(ClassReelException):
    """
    Raised when a license key has no account slots left.
    """
    code = "QUOTA_EXCEEDED"


class AccountNotFoundError(ClassReelException):
    """
    Raised when no account exists for the given email.
    """
    code = "ACCOUNT_NOT_FOUND"


class NotMemberError(ClassReelException):
    """
    Raised when removing a class code the account does not hold.
    """
    code = "NOT_MEMBER"


class InvalidClassCodeError(ClassReelException):
    """
    Raised when a class code is blank after trimming.
    """
    code = "INVALID_CLASS_CODE"


class InvalidCredentialsError(ClassReelException):
    """
    Raised when sign-in credentials are invalid.
    """
    code = "INVALID_CREDENTIALS"


class DuplicateVideoError(ClassReelException):
    """
    Raised when the owner already has a video with the same title and class code.
    """
    code = "DUPLICATE_VIDEO"


class VideoNotFoundError(ClassReelException):
    """
    Raised when a requested video does not exist.
    """
    code = "VIDEO_NOT_FOUND"


class ChunkNotFoundError(ClassReelException):
    """
    Raised when a file id has no committed chunk data.
    """
    code = "CHUNK_NOT_FOUND"


class ChunkIntegrityError(ClassReelException):
    """
    Raised when stored chunks have a gap, an unexpected length or a bad checksum.
    """
    code = "CHUNK_INTEGRITY_ERROR"


class UploadFailedError(ClassReelException):
    """
    Raised when an upload could not be persisted. Nothing is committed.
    """
    code = "UPLOAD_FAILED"


class PayloadTooLargeError(UploadFailedError):
    """
    Raised when an upload stream exceeds the configured maximum size.
    """
    code = "PAYLOAD_TOO_LARGE"
