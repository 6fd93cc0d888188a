from __future__ import annotations

import hashlib
import hmac


def derive_mac_key(secret: str) -> bytes:
    """Key derivation of the platform crypto service: hex SHA-512 of secret + "a"."""
    return hashlib.sha512((secret + "a").encode("utf-8", "surrogatepass")).hexdigest().encode("ascii")


class Signer:
    """
    Signs and verifies the (approve, reject, description[, user]) tuple.

    The signature is sha256(hmac_sha512(key, message)) in lowercase hex. The
    fields are concatenated without a delimiter so links issued by earlier
    deployments keep verifying. Lone surrogates are encoded with
    "surrogatepass", so such text fails verification instead of raising.
    """

    def __init__(self, secret: str):
        if not isinstance(secret, str) or not secret:
            raise ValueError("signing secret must be a non-empty string")
        self._key = derive_mac_key(secret)

    @staticmethod
    def _message(
        approve_callback_uri: str,
        reject_callback_uri: str,
        description: str,
        user_id: str | None,
    ) -> bytes:
        parts = (approve_callback_uri, reject_callback_uri, description, user_id or "")
        for part in parts:
            if not isinstance(part, str):
                raise TypeError(f"signed fields must be str, got {type(part).__name__}")
        return "".join(parts).encode("utf-8", "surrogatepass")

    def sign(
        self,
        approve_callback_uri: str,
        reject_callback_uri: str,
        description: str,
        user_id: str | None = None,
    ) -> str:
        message = self._message(approve_callback_uri, reject_callback_uri, description, user_id)
        mac = hmac.new(self._key, message, hashlib.sha512).digest()
        return hashlib.sha256(mac).hexdigest()

    def verify(
        self,
        approve_callback_uri: str,
        reject_callback_uri: str,
        description: str,
        signature: str,
        user_id: str | None = None,
    ) -> bool:
        if not isinstance(signature, str):
            raise TypeError(f"signature must be str, got {type(signature).__name__}")
        expected = self.sign(approve_callback_uri, reject_callback_uri, description, user_id)
        return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8", "surrogatepass"))
