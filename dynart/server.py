# dynart/server.py
"""
HTTP server for a collection.

Provides a JSON API over a Collection. Reads are open; writes must be signed
by an Account, and the signer's address becomes the caller.

Endpoints:
    GET  /health                        - Liveness
    GET  /info                          - Name, symbol, supply
    GET  /assets/:id                    - Owner and approved spender
    GET  /assets/:id/uri                - Regenerated data reference
    GET  /balances/:address             - Balance of an identity
    GET  /operators/:owner/:operator    - Operator relation
    GET  /events[?asset=:id]            - Notification log
    POST /mint                          - Allocate an asset to the caller
    POST /approve                       - {asset_id, spender}
    POST /approval-for-all              - {operator, approved}
    POST /transfer                      - {from, to, asset_id}
    POST /safe-transfer                 - {from, to, asset_id, data?}

Signed request body:
    {"payload": {"action": "<endpoint>", "created": ISO-8601 UTC, "nonce": hex, ...},
     "public_key": PEM, "signature": b64}

A payload is accepted once: it must be created within max_age seconds of
the server clock, and its (signer, nonce) pair must not have been seen.
"""

import calendar
import json
import logging
import threading
import time
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from .client import CREATED_FORMAT
from .collection import CallContext, Collection
from .errors import NotFound, RegistryError, Unauthorized, error_to_dict
from .identity import address_from_public_key, verify_signature

logger = logging.getLogger(__name__)

WRITE_ACTIONS = ("mint", "approve", "approval-for-all", "transfer", "safe-transfer")

DEFAULT_MAX_AGE = 300


class SignatureError(Exception):
    """A write request was not signed correctly."""


def _status_for(error: RegistryError) -> int:
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, Unauthorized):
        return 403
    return 400


class CollectionServer:
    """
    HTTP server for a collection.

    Usage:
        server = CollectionServer(collection, port=8080)
        server.start()  # Blocking
    """

    def __init__(
        self,
        collection: Collection,
        host: str = "127.0.0.1",
        port: int = 8080,
        max_age: int = DEFAULT_MAX_AGE,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.collection = collection
        self.host = host
        self.port = port
        self.max_age = max_age
        self._clock = clock or time.time
        self._httpd: Optional[HTTPServer] = None
        # (signer, nonce) -> time after which the entry can be forgotten
        self._seen: Dict[Tuple[str, str], float] = {}
        self._seen_lock = threading.Lock()

    def _check_fresh(self, signer: str, payload: Dict[str, Any]) -> None:
        """Reject stale, future-dated or already-used payloads."""
        created = payload.get("created")
        nonce = payload.get("nonce")
        if not isinstance(created, str) or not isinstance(nonce, str) or not nonce:
            raise SignatureError("Signed payload requires created and nonce")
        try:
            created_at = calendar.timegm(time.strptime(created, CREATED_FORMAT))
        except ValueError:
            raise SignatureError(f"Bad created timestamp: {created!r}")

        now = self._clock()
        if abs(now - created_at) > self.max_age:
            raise SignatureError(f"Payload created at {created} is outside the {self.max_age}s window")

        key = (signer, nonce)
        with self._seen_lock:
            self._seen = {k: expiry for k, expiry in self._seen.items() if expiry >= now}
            if key in self._seen:
                raise SignatureError("Replayed request")
            self._seen[key] = created_at + self.max_age

    def authenticate(self, body: Dict[str, Any], action: str) -> Tuple[str, Dict[str, Any]]:
        """
        Verify a signed write request.

        Returns:
            (caller address, payload)

        Raises:
            SignatureError: If the body is malformed, the signature is invalid,
                or the payload is stale or has been used before
        """
        payload = body.get("payload")
        public_key = body.get("public_key")
        signature = body.get("signature")
        if not isinstance(payload, dict) or not public_key or not signature:
            raise SignatureError("Signed body requires payload, public_key and signature")
        if payload.get("action") != action:
            raise SignatureError(f"Payload was signed for {payload.get('action')!r}, not {action!r}")

        public_key_pem = public_key.encode("utf-8")
        if not verify_signature(public_key_pem, payload, signature):
            raise SignatureError("Invalid signature")
        signer = address_from_public_key(public_key_pem)
        self._check_fresh(signer, payload)
        return signer, payload

    def apply(self, action: str, caller: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Run an authenticated write against the collection."""
        ctx = CallContext(caller=caller)
        collection = self.collection

        if action == "mint":
            return {"asset_id": collection.mint(ctx)}
        if action == "approve":
            collection.approve(ctx, int(payload["asset_id"]), payload["spender"])
        elif action == "approval-for-all":
            collection.set_approval_for_all(ctx, payload["operator"], bool(payload["approved"]))
        elif action == "transfer":
            collection.transfer(ctx, payload["from"], payload["to"], int(payload["asset_id"]))
        elif action == "safe-transfer":
            data = bytes.fromhex(payload.get("data", ""))
            collection.safe_transfer(ctx, payload["from"], payload["to"], int(payload["asset_id"]), data)
        else:
            raise ValueError(f"Unknown action: {action}")
        return {"status": "ok"}

    def _create_handler(server_instance):
        """Create request handler with access to server instance."""

        class RequestHandler(BaseHTTPRequestHandler):
            server_ref = server_instance

            def log_message(self, format, *args):
                logger.debug(format % args)

            def _send_json(self, data: Any, status: int = 200):
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.end_headers()
                self.wfile.write(json.dumps(data).encode())

            def _send_error(self, message: str, status: int = 400):
                self._send_json({"error": message}, status)

            def _send_registry_error(self, error: RegistryError):
                self._send_json(error_to_dict(error), _status_for(error))

            def do_GET(self):
                parsed = urlparse(self.path)
                parts = [p for p in parsed.path.split("/") if p]
                collection = self.server_ref.collection

                try:
                    if parts == ["health"]:
                        self._send_json({"status": "ok"})

                    elif parts == ["info"]:
                        self._send_json({
                            "name": collection.name,
                            "symbol": collection.symbol,
                            "total_supply": collection.total_supply,
                        })

                    elif len(parts) == 2 and parts[0] == "assets":
                        asset_id = int(parts[1])
                        self._send_json({
                            "asset_id": asset_id,
                            "owner": collection.owner_of(asset_id),
                            "approved": collection.get_approved(asset_id),
                        })

                    elif len(parts) == 3 and parts[0] == "assets" and parts[2] == "uri":
                        asset_id = int(parts[1])
                        self._send_json({
                            "asset_id": asset_id,
                            "uri": collection.token_uri(asset_id),
                        })

                    elif len(parts) == 2 and parts[0] == "balances":
                        self._send_json({
                            "address": parts[1],
                            "balance": collection.balance_of(parts[1]),
                        })

                    elif len(parts) == 3 and parts[0] == "operators":
                        self._send_json({
                            "owner": parts[1],
                            "operator": parts[2],
                            "approved": collection.is_approved_for_all(parts[1], parts[2]),
                        })

                    elif parts == ["events"]:
                        query = parse_qs(parsed.query)
                        asset = query.get("asset")
                        asset_id = int(asset[0]) if asset else None
                        self._send_json({
                            "events": [e.to_dict() for e in collection.events(asset_id)],
                        })

                    else:
                        self._send_error("Not found", 404)

                except RegistryError as e:
                    self._send_registry_error(e)
                except ValueError as e:
                    self._send_error(str(e))
                except Exception as e:
                    logger.exception(f"GET {parsed.path} failed")
                    self._send_error(str(e), 500)

            def do_POST(self):
                action = self.path.strip("/")
                if action not in WRITE_ACTIONS:
                    self._send_error("Not found", 404)
                    return

                try:
                    content_length = int(self.headers.get("Content-Length", 0))
                    body = json.loads(self.rfile.read(content_length).decode())
                    caller, payload = self.server_ref.authenticate(body, action)
                    result = self.server_ref.apply(action, caller, payload)
                    self._send_json(result)
                except json.JSONDecodeError as e:
                    self._send_error(f"Invalid JSON: {e}")
                except SignatureError as e:
                    self._send_error(str(e), 401)
                except RegistryError as e:
                    self._send_registry_error(e)
                except (KeyError, ValueError) as e:
                    self._send_error(f"Bad request: {e}")
                except Exception as e:
                    logger.exception(f"{action} failed")
                    self._send_error(str(e), 500)

        return RequestHandler

    def _bind(self) -> HTTPServer:
        handler = self._create_handler()
        self._httpd = HTTPServer((self.host, self.port), handler)
        # Port 0 binds an ephemeral port
        self.port = self._httpd.server_address[1]
        return self._httpd

    def start(self):
        """Start the HTTP server (blocking)."""
        httpd = self._httpd or self._bind()
        logger.info(f"Collection server starting on {self.host}:{self.port}")
        print(f"Collection server running on http://{self.host}:{self.port}")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("\nShutting down...")
        finally:
            httpd.server_close()

    def start_background(self) -> threading.Thread:
        """Start the server in a background thread."""
        self._bind()
        thread = threading.Thread(target=self._httpd.serve_forever)
        thread.daemon = True
        thread.start()
        return thread

    def shutdown(self):
        """Stop a server started with start_background()."""
        if self._httpd:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
