"""
Software authenticator used by the tests.

Produces real "none"-attestation registration responses and ES256 signed
assertion responses, so the router can be exercised end to end without a
browser.
"""

import hashlib
import json
import os

import cbor2
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from webauthn.helpers import bytes_to_base64url

FLAG_UP = 0x01
FLAG_UV = 0x04
FLAG_AT = 0x40


class SoftAuthenticator:
    def __init__(self, rp_id, origin):
        self.rp_id = rp_id
        self.origin = origin
        self.private_key = ec.generate_private_key(ec.SECP256R1())
        self.credential_id = os.urandom(32)
        self.sign_count = 0

    @property
    def credential_id_b64(self):
        return bytes_to_base64url(self.credential_id)

    def cose_public_key(self):
        numbers = self.private_key.public_key().public_numbers()
        return cbor2.dumps(
            {
                1: 2,
                3: -7,
                -1: 1,
                -2: numbers.x.to_bytes(32, "big"),
                -3: numbers.y.to_bytes(32, "big"),
            }
        )

    def client_data(self, ceremony_type, challenge, origin=None):
        return json.dumps(
            {
                "type": ceremony_type,
                "challenge": challenge,
                "origin": origin or self.origin,
                "crossOrigin": False,
            }
        ).encode("utf-8")

    def _rp_id_hash(self):
        return hashlib.sha256(self.rp_id.encode("utf-8")).digest()

    def create(self, challenge, origin=None, flags=FLAG_UP | FLAG_AT):
        """Answer navigator.credentials.create() for the given challenge."""
        auth_data = (
            self._rp_id_hash()
            + bytes([flags])
            + self.sign_count.to_bytes(4, "big")
            + bytes(16)
            + len(self.credential_id).to_bytes(2, "big")
            + self.credential_id
            + self.cose_public_key()
        )
        attestation_object = cbor2.dumps({"fmt": "none", "attStmt": {}, "authData": auth_data})
        client_data_json = self.client_data("webauthn.create", challenge, origin)

        return {
            "id": self.credential_id_b64,
            "rawId": self.credential_id_b64,
            "type": "public-key",
            "response": {
                "clientDataJSON": bytes_to_base64url(client_data_json),
                "attestationObject": bytes_to_base64url(attestation_object),
                "transports": ["usb"],
            },
            "clientExtensionResults": {},
        }

    def get(self, challenge, origin=None, sign_count=None, flags=FLAG_UP):
        """Answer navigator.credentials.get() for the given challenge."""
        if sign_count is None:
            self.sign_count += 1
            sign_count = self.sign_count

        auth_data = self._rp_id_hash() + bytes([flags]) + sign_count.to_bytes(4, "big")
        client_data_json = self.client_data("webauthn.get", challenge, origin)
        signature = self.private_key.sign(
            auth_data + hashlib.sha256(client_data_json).digest(),
            ec.ECDSA(hashes.SHA256()),
        )

        return {
            "id": self.credential_id_b64,
            "rawId": self.credential_id_b64,
            "type": "public-key",
            "response": {
                "authenticatorData": bytes_to_base64url(auth_data),
                "clientDataJSON": bytes_to_base64url(client_data_json),
                "signature": bytes_to_base64url(signature),
            },
            "clientExtensionResults": {},
        }
