import json
import secrets

import cbor2
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url

# COSE key parameters (RFC 8152)
COSE_KTY = 1
COSE_ALG = 3
COSE_KTY_OKP = 1
COSE_KTY_EC2 = 2
COSE_KTY_RSA = 3

EC2_CURVES = {
    1: ec.SECP256R1,
    2: ec.SECP384R1,
    3: ec.SECP521R1,
}
OKP_CURVE_ED25519 = 6


def generate_challenge(length=32):
    """Random challenge as unpadded base64url text."""
    return bytes_to_base64url(secrets.token_bytes(length))


def generate_user_handle():
    return bytes_to_base64url(secrets.token_bytes(32))


def normalize_credential_id(credential_id):
    standard_format = credential_id.replace("-", "+").replace("_", "/")
    return standard_format.replace("+", "-").replace("/", "_").replace("=", "")


def parse_client_data(client_data_json_b64):
    """Decode the base64url clientDataJSON of a credential response.

    Raises ValueError when the payload is not base64url encoded JSON object.
    """
    try:
        raw = base64url_to_bytes(client_data_json_b64)
        client_data = json.loads(raw.decode("utf-8"))
    except (TypeError, ValueError, UnicodeDecodeError) as e:
        raise ValueError(f"Malformed clientDataJSON: {e}") from e

    if not isinstance(client_data, dict):
        raise ValueError("Malformed clientDataJSON: not an object")
    return client_data


def cose_key_to_pem(cose_key_bytes):
    """Convert a COSE_Key credential public key into SubjectPublicKeyInfo PEM."""
    cose_key = cbor2.loads(cose_key_bytes)
    kty = cose_key.get(COSE_KTY)

    if kty == COSE_KTY_EC2:
        curve = EC2_CURVES.get(cose_key.get(-1))
        if curve is None:
            raise ValueError(f"Unsupported EC2 curve: {cose_key.get(-1)}")
        x = cose_key[-2]
        y = cose_key[-3]
        public_numbers = ec.EllipticCurvePublicNumbers(
            x=int.from_bytes(x, "big"),
            y=int.from_bytes(y, "big"),
            curve=curve(),
        )
        public_key = public_numbers.public_key()
    elif kty == COSE_KTY_RSA:
        public_numbers = rsa.RSAPublicNumbers(
            e=int.from_bytes(cose_key[-2], "big"),
            n=int.from_bytes(cose_key[-1], "big"),
        )
        public_key = public_numbers.public_key()
    elif kty == COSE_KTY_OKP and cose_key.get(-1) == OKP_CURVE_ED25519:
        public_key = ed25519.Ed25519PublicKey.from_public_bytes(cose_key[-2])
    else:
        raise ValueError(f"Unsupported key type: {kty} (alg {cose_key.get(COSE_ALG)})")

    pem = public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return pem.decode("ascii")
