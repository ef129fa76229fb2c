"""Error taxonomy for the relay and the two-factor flow."""


class RelayError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UpstreamAIFailure(RelayError):
    """AI backend failed or answered with something unusable."""


class PersistenceFailure(RelayError):
    """Writing to the conversation log failed."""


class TwoFactorError(RelayError):
    status_code = 400


class InvalidCredentials(TwoFactorError):
    status_code = 401

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class MissingContact(TwoFactorError):
    status_code = 400

    def __init__(self, message: str = "Phone number is required for this method"):
        super().__init__(message)


class UnsupportedMethod(TwoFactorError):
    status_code = 400

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unsupported delivery method: {method}")


class InvalidContact(TwoFactorError):
    status_code = 403

    def __init__(self, message: str = "Phone number does not match the registered admin phone"):
        super().__init__(message)


class ChallengeNotFound(TwoFactorError):
    status_code = 401

    def __init__(self, message: str = "No verification code found. Request a new one"):
        super().__init__(message)


class ChallengeExpired(TwoFactorError):
    status_code = 401

    def __init__(self, message: str = "Verification code expired. Request a new one"):
        super().__init__(message)


class ChallengeMismatch(TwoFactorError):
    status_code = 401

    def __init__(self, message: str = "Invalid verification code"):
        super().__init__(message)


class DeliveryFailure(TwoFactorError):
    status_code = 502

    def __init__(self, message: str = "Failed to deliver verification code"):
        super().__init__(message)


class ConfigurationError(RelayError):
    """A required setting is missing."""

    status_code = 500
