"""Error taxonomy shared by the achievement, wallet and minting logic.

Every error carries the HTTP status the API answers with and a stable ``code``
the client can branch on. ``reason`` is the user-visible message and must never
contain secrets.
"""


class CalixError(Exception):
    status_code = 500
    code = "InternalError"

    def __init__(self, reason: str = ""):
        super().__init__(reason or self.code)
        self.reason = reason or self.code

    def to_dict(self) -> dict:
        return {"error": self.reason, "code": self.code}


# --- CONFIGURATION ---
class ConfigurationMissing(CalixError):
    status_code = 503
    code = "ConfigurationMissing"


class MintingUnavailable(ConfigurationMissing):
    code = "MintingUnavailable"


# --- CALLER ERRORS ---
class ValidationFailure(CalixError):
    status_code = 400
    code = "ValidationFailure"


class AuthenticationFailure(CalixError):
    status_code = 401
    code = "AuthenticationFailure"


class InvalidSignatureLength(AuthenticationFailure):
    code = "InvalidSignatureLength"


class InvalidSignature(AuthenticationFailure):
    code = "InvalidSignature"


class PreconditionFailure(CalixError):
    status_code = 409
    code = "PreconditionFailure"


class WalletNotLinked(PreconditionFailure):
    code = "WalletNotLinked"


class NotEarned(PreconditionFailure):
    code = "NotEarned"


class AlreadyMinted(PreconditionFailure):
    code = "AlreadyMinted"


class NotFound(CalixError):
    status_code = 404
    code = "NotFound"


class UnknownAchievement(NotFound):
    code = "UnknownAchievement"


# --- COLLABORATORS ---
class UpstreamFailure(CalixError):
    status_code = 502
    code = "UpstreamFailure"


class MintFailed(UpstreamFailure):
    code = "MintFailed"
