"""Sign-in failure taxonomy.

Every failure is terminal for the current sign-in attempt. The HTTP layer
turns any :class:`SignInError` into an opaque "sign-in failed" response and
keeps the specific reason for the logs.
"""


class SignInError(Exception):
    """Base class for all sign-in failures."""

    code = "SignInError"


class MissingCredential(SignInError):
    """No bearer credential was submitted."""

    code = "MissingCredential"


class InvalidToken(SignInError):
    """The identity token failed signature, issuer, audience or time checks."""

    code = "InvalidToken"


class CannotExtractPayload(InvalidToken):
    """The identity token verified but carried no usable payload."""

    code = "CannotExtractPayload"


class KeySetUnavailable(SignInError):
    """The provider's signing keys could not be fetched."""

    code = "KeySetUnavailable"


class EmailUnavailable(SignInError):
    """The verified claims carry no email address."""

    code = "EmailUnavailable"


class EmailNotVerified(SignInError):
    """The provider does not vouch for the email address."""

    code = "EmailNotVerified"


class UserNotProvisioned(SignInError):
    """No user exists for the verified email address."""

    code = "UserNotProvisioned"


class OAuthSignInError(SignInError):
    """The OAuth redirect flow failed (state, code exchange or claims)."""

    code = "OAuthSignin"


class OAuthAccountNotLinked(SignInError):
    """The email belongs to a user who has not linked this provider."""

    code = "OAuthAccountNotLinked"
