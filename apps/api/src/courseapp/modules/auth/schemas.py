"""Authentication schemas."""

from courseapp.core.validation import OutputSchema


class VerifyResponse(OutputSchema):
    """The principal behind a verified admin token."""

    uid: str
    email: str
    admin: bool
