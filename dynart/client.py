# dynart/client.py
"""
Client SDK for the collection server.

Usage:
    account = Account.load("~/.dynart/keys/me.pem")
    client = CollectionClient("http://localhost:8080", account=account)

    asset_id = client.mint()
    print(client.owner_of(asset_id))
    print(client.token_uri(asset_id))
"""

import json
import time
import uuid
from typing import Any, Dict, List, Optional
from urllib.request import urlopen, Request
from urllib.error import HTTPError, URLError

from .errors import error_from_dict
from .identity import Account

CREATED_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def sign_request(account: Account, action: str, **fields: Any) -> Dict[str, Any]:
    """
    Build a signed request body for a write endpoint.

    Each body carries a fresh nonce and its creation time, so the server
    accepts it once.
    """
    payload = {
        "action": action,
        "created": time.strftime(CREATED_FORMAT, time.gmtime()),
        "nonce": uuid.uuid4().hex,
        **fields,
    }
    return {
        "payload": payload,
        "public_key": account.public_key.decode("utf-8"),
        "signature": account.sign(payload),
    }


class CollectionClient:
    """
    Client for the collection server.

    Args:
        base_url: Server URL (e.g., "http://localhost:8080")
        account: Account that signs write requests
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        account: Optional[Account] = None,
        timeout: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.account = account
        self.timeout = timeout

    def _request(self, method: str, path: str, data: dict = None) -> dict:
        """Make HTTP request to server."""
        url = f"{self.base_url}{path}"

        if data is not None:
            body = json.dumps(data).encode()
            headers = {"Content-Type": "application/json"}
        else:
            body = None
            headers = {}

        req = Request(url, data=body, headers=headers, method=method)

        try:
            with urlopen(req, timeout=self.timeout) as response:
                return json.loads(response.read().decode())
        except HTTPError as e:
            error_body = e.read().decode()
            try:
                error_data = json.loads(error_body)
            except json.JSONDecodeError:
                raise RuntimeError(f"HTTP {e.code}: {error_body}")
            if "kind" in error_data:
                raise error_from_dict(error_data)
            raise RuntimeError(error_data.get("error", str(e)))
        except URLError as e:
            raise ConnectionError(f"Failed to connect to server: {e}")

    def _signed(self, action: str, **fields: Any) -> dict:
        if self.account is None:
            raise RuntimeError("An account is required for write requests")
        return self._request("POST", f"/{action}", sign_request(self.account, action, **fields))

    def health(self) -> bool:
        """Check if server is healthy."""
        try:
            result = self._request("GET", "/health")
            return result.get("status") == "ok"
        except Exception:
            return False

    def info(self) -> Dict[str, Any]:
        return self._request("GET", "/info")

    # -- writes ------------------------------------------------------------

    def mint(self) -> int:
        """Allocate a new asset to this client's account."""
        return self._signed("mint")["asset_id"]

    def approve(self, asset_id: int, spender: str) -> None:
        self._signed("approve", asset_id=asset_id, spender=spender)

    def set_approval_for_all(self, operator: str, approved: bool) -> None:
        self._signed("approval-for-all", operator=operator, approved=approved)

    def transfer(self, from_: str, to: str, asset_id: int) -> None:
        self._signed("transfer", **{"from": from_, "to": to, "asset_id": asset_id})

    def safe_transfer(self, from_: str, to: str, asset_id: int, data: bytes = b"") -> None:
        self._signed(
            "safe-transfer",
            **{"from": from_, "to": to, "asset_id": asset_id, "data": data.hex()},
        )

    # -- reads -------------------------------------------------------------

    def owner_of(self, asset_id: int) -> str:
        return self._request("GET", f"/assets/{asset_id}")["owner"]

    def get_approved(self, asset_id: int) -> str:
        return self._request("GET", f"/assets/{asset_id}")["approved"]

    def token_uri(self, asset_id: int) -> str:
        return self._request("GET", f"/assets/{asset_id}/uri")["uri"]

    def balance_of(self, address: str) -> int:
        return self._request("GET", f"/balances/{address}")["balance"]

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return self._request("GET", f"/operators/{owner}/{operator}")["approved"]

    def events(self, asset_id: Optional[int] = None) -> List[Dict[str, Any]]:
        path = "/events" if asset_id is None else f"/events?asset={asset_id}"
        return self._request("GET", path)["events"]


__all__ = ["CollectionClient", "sign_request"]
