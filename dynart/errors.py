# dynart/errors.py
"""
Registry error kinds.

Every state-changing registry operation checks all of its preconditions
before touching state, so catching one of these means nothing changed.
"""

from typing import Any, Dict, Optional


class RegistryError(Exception):
    """Base class for registry failures."""

    #: Stable name used on the wire (server responses, client re-raise).
    kind = "RegistryError"


class NotFound(RegistryError):
    """The asset identifier was never allocated."""

    kind = "NotFound"

    def __init__(self, asset_id: int):
        self.asset_id = asset_id
        super().__init__(f"Asset {asset_id} does not exist")


class Unauthorized(RegistryError):
    """The caller is neither owner, approved spender nor approved operator."""

    kind = "Unauthorized"

    def __init__(self, caller: str, asset_id: int):
        self.caller = caller
        self.asset_id = asset_id
        super().__init__(f"{caller} is not authorized for asset {asset_id}")


class InvalidRecipient(RegistryError):
    """The destination identity is the null identity."""

    kind = "InvalidRecipient"

    def __init__(self, message: str = "Recipient is the null identity"):
        super().__init__(message)


class InvalidOwner(RegistryError):
    """Null owner queried, or the stated source owner is not the owner."""

    kind = "InvalidOwner"

    def __init__(self, message: str = "Owner is the null identity"):
        super().__init__(message)


class AlreadyExists(RegistryError):
    """Identifier collision on allocation."""

    kind = "AlreadyExists"

    def __init__(self, asset_id: int):
        self.asset_id = asset_id
        super().__init__(f"Asset {asset_id} already exists")


class UnsafeRecipient(RegistryError):
    """The recipient-acceptance check rejected a safe transfer."""

    kind = "UnsafeRecipient"

    def __init__(self, recipient: str, reason: Optional[str] = None):
        self.recipient = recipient
        message = f"Recipient {recipient} did not accept the asset"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


ERRORS_BY_KIND = {
    cls.kind: cls
    for cls in (NotFound, Unauthorized, InvalidRecipient, InvalidOwner, AlreadyExists, UnsafeRecipient)
}


def error_to_dict(error: RegistryError) -> Dict[str, Any]:
    """Serialize a registry error for a JSON response body."""
    data: Dict[str, Any] = {"error": str(error), "kind": error.kind}
    for key, value in vars(error).items():
        if not key.startswith("_"):
            data[key] = value
    return data


def error_from_dict(data: Dict[str, Any]) -> RegistryError:
    """Rebuild a registry error reported by a server."""
    kind = data.get("kind")
    message = data.get("error", kind or "unknown error")
    if kind == "NotFound":
        error = NotFound(data.get("asset_id"))
    elif kind == "Unauthorized":
        error = Unauthorized(data.get("caller"), data.get("asset_id"))
    elif kind == "AlreadyExists":
        error = AlreadyExists(data.get("asset_id"))
    elif kind == "UnsafeRecipient":
        error = UnsafeRecipient(data.get("recipient"))
    elif kind in ERRORS_BY_KIND:
        error = ERRORS_BY_KIND[kind]()
    else:
        error = RegistryError(message)
    # Keep the server's wording
    error.args = (message,)
    return error
