class ProfileError(ValueError):
    """Base class for errors raised by the profile and photo services."""


class PhotoNotFoundError(ProfileError):
    pass


class PhotoAccessDenied(ProfileError):
    """The photo exists but belongs to someone else.

    The message is deliberately generic so callers cannot probe ownership.
    """

    def __init__(self, message: str = "Unauthorized action."):
        super().__init__(message)


class InvalidPhotoOperation(ProfileError):
    pass


class ProfileValidationError(ProfileError):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class PhotoStorageError(ProfileError):
    pass
