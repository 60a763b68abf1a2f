"""
WebAuthn registration and login endpoints for Flask.

A :class:`Webauthn` object holds the relying-party configuration and a
credential store; :meth:`Webauthn.initialize` turns it into a blueprint that
can be mounted anywhere in an application::

    webauthn = Webauthn(
        origin="http://localhost:3000",
        rp_name="Example",
        username_field="username",
        user_fields={"username": "username", "name": "displayName"},
        store=MemoryAdapter(),
    )
    app.register_blueprint(webauthn.initialize(), url_prefix="/webauthn")

Ceremony verification (challenge binding, attestation and assertion
signatures, sign counters) is done by py_webauthn. This module only keeps the
session state between the begin and finish steps and the user records in the
store.
"""

import datetime
import json
import traceback
from functools import wraps
from urllib.parse import urlparse

from flask import Blueprint, jsonify, redirect, request, session
from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.exceptions import WebAuthnException
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorAttachment,
    AuthenticatorSelectionCriteria,
    AuthenticatorTransport,
    PublicKeyCredentialDescriptor,
    UserVerificationRequirement,
)

from webauthn_utils import (
    cose_key_to_pem,
    generate_challenge,
    generate_user_handle,
    normalize_credential_id,
    parse_client_data,
)

KNOWN_TRANSPORTS = {transport.value for transport in AuthenticatorTransport}

SESSION_CHALLENGE = "challenge"
SESSION_USERNAME = "username"
SESSION_PENDING_USERNAME = "pending_username"
SESSION_LOGGED_IN = "logged_in"


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class Webauthn:
    def __init__(
        self,
        origin,
        store,
        rp_name,
        username_field="username",
        user_fields=None,
        rp_id=None,
        credential_endpoint="/register",
        assertion_endpoint="/login",
        challenge_endpoint="/response",
        logout_endpoint="/logout",
        attestation="none",
        user_verification="preferred",
        authenticator_attachment=None,
        timeout=60000,
        enable_logging=False,
    ):
        if not origin:
            raise ValueError("origin is required")
        parsed = urlparse(origin)
        if not parsed.scheme or not parsed.hostname:
            raise ValueError(f"origin must include a scheme and host: {origin!r}")

        for method in ("get", "put", "delete"):
            if not callable(getattr(store, method, None)):
                raise TypeError(f"store must implement {method}()")

        if not username_field:
            raise ValueError("username_field is required")

        self.origin = origin.rstrip("/")
        self.rp_id = rp_id or parsed.hostname
        self.rp_name = rp_name or self.rp_id
        self.store = store
        self.username_field = username_field
        self.user_fields = dict(user_fields) if user_fields else {username_field: username_field}

        self.credential_endpoint = credential_endpoint
        self.assertion_endpoint = assertion_endpoint
        self.challenge_endpoint = challenge_endpoint
        self.logout_endpoint = logout_endpoint
        self.timeout = timeout
        self.enable_logging = enable_logging

        try:
            self.attestation = AttestationConveyancePreference(attestation)
        except ValueError:
            raise ValueError(f"Unknown attestation preference: {attestation!r}") from None

        try:
            self.user_verification = UserVerificationRequirement(user_verification)
        except ValueError:
            raise ValueError(f"Unknown user verification requirement: {user_verification!r}") from None

        attachment = None
        if authenticator_attachment is not None:
            try:
                attachment = AuthenticatorAttachment(authenticator_attachment)
            except ValueError:
                raise ValueError(
                    f"Unknown authenticator attachment: {authenticator_attachment!r}"
                ) from None

        self.authenticator_selection = AuthenticatorSelectionCriteria(
            authenticator_attachment=attachment,
            user_verification=self.user_verification,
        )

    @property
    def require_user_verification(self):
        return self.user_verification == UserVerificationRequirement.REQUIRED

    # ==========================================
    # Router
    # ==========================================

    def initialize(self, name="webauthn"):
        """Build a blueprint exposing the register/login/response/logout endpoints."""
        bp = Blueprint(name, __name__)
        bp.add_url_rule(self.credential_endpoint, "register", self.register, methods=["POST"])
        bp.add_url_rule(self.assertion_endpoint, "login", self.login, methods=["POST"])
        bp.add_url_rule(self.challenge_endpoint, "response", self.response, methods=["POST"])
        bp.add_url_rule(self.logout_endpoint, "logout", self.logout, methods=["GET"])
        return bp

    def authenticate(self, failure_redirect=None):
        """Guard a view so only logged-in sessions reach it."""

        def decorator(f):
            @wraps(f)
            def wrapper(*args, **kwargs):
                if not session.get(SESSION_LOGGED_IN):
                    if failure_redirect:
                        return redirect(failure_redirect)
                    return self._failed("Unauthorized", 401)
                return f(*args, **kwargs)

            return wrapper

        return decorator

    def current_user(self):
        if not session.get(SESSION_LOGGED_IN):
            return None
        username = session.get(SESSION_USERNAME)
        if not username:
            return None
        return self.store.get(username)

    # ==========================================
    # Views
    # ==========================================

    def register(self):
        try:
            data = request.get_json(silent=True) or {}
            username = self._username_from(data)
            if username is None:
                return self._failed(f"{self.username_field} required", 400)

            user = self.store.get(username)
            if user and user.get("authenticators") and not self._is_session_user(username):
                return self._failed(f"{self.username_field} {username} already exists", 403)

            if not user or not user.get("authenticators"):
                user = {"id": generate_user_handle(), "authenticators": []}

            user[self.username_field] = username
            for body_key, record_key in self.user_fields.items():
                if body_key in data:
                    user[record_key] = data[body_key]
            self.store.put(username, user)

            challenge = generate_challenge()
            options = generate_registration_options(
                rp_id=self.rp_id,
                rp_name=self.rp_name,
                user_id=base64url_to_bytes(user["id"]),
                user_name=username,
                user_display_name=self._display_name(user),
                challenge=base64url_to_bytes(challenge),
                timeout=self.timeout,
                attestation=self.attestation,
                authenticator_selection=self.authenticator_selection,
                exclude_credentials=self._credential_descriptors(user),
            )

            session[SESSION_CHALLENGE] = challenge
            session[SESSION_PENDING_USERNAME] = username
            self._log(f"registration challenge issued for {username}")
            return self._options_response(options)
        except Exception as e:
            print(traceback.format_exc())
            return self._failed(str(e), 500)

    def login(self):
        try:
            data = request.get_json(silent=True) or {}
            username = self._username_from(data)
            if username is None:
                return self._failed(f"{self.username_field} required", 400)

            user = self.store.get(username)
            if not user or not user.get("authenticators"):
                return self._failed(f"{self.username_field} {username} does not exist", 401)

            challenge = generate_challenge()
            options = generate_authentication_options(
                rp_id=self.rp_id,
                challenge=base64url_to_bytes(challenge),
                timeout=self.timeout,
                allow_credentials=self._credential_descriptors(user),
                user_verification=self.user_verification,
            )

            session[SESSION_CHALLENGE] = challenge
            session[SESSION_PENDING_USERNAME] = username
            self._log(f"login challenge issued for {username}")
            return self._options_response(options)
        except Exception as e:
            print(traceback.format_exc())
            return self._failed(str(e), 500)

    def response(self):
        try:
            # A challenge answers exactly one attempt, successful or not
            expected_challenge = session.pop(SESSION_CHALLENGE, None)
            username = session.pop(SESSION_PENDING_USERNAME, None)

            data = request.get_json(silent=True)
            if not self._is_credential_body(data):
                return self._failed(
                    "Response missing one or more of id/rawId/response/type fields, "
                    "or type is not public-key!",
                    400,
                )

            if not expected_challenge or not username:
                return self._failed("No pending challenge for this session", 400)

            credential_response = data["response"]
            try:
                client_data = parse_client_data(credential_response.get("clientDataJSON"))
            except ValueError as e:
                return self._failed(str(e), 400)

            if client_data.get("challenge") != expected_challenge:
                return self._failed("Challenges don't match!", 400)

            if client_data.get("origin") != self.origin:
                return self._failed("Origins don't match!", 400)

            user = self.store.get(username)
            if not user:
                return self._failed(f"{self.username_field} {username} does not exist", 401)

            if credential_response.get("attestationObject") is not None:
                failure = self._finish_registration(data, user, expected_challenge)
            elif credential_response.get("authenticatorData") is not None:
                failure = self._finish_authentication(data, user, expected_challenge)
            else:
                return self._failed("Can not determine type of response!", 400)

            if failure is not None:
                return failure

            session[SESSION_LOGGED_IN] = True
            session[SESSION_USERNAME] = username
            self._log(f"{username} authenticated")
            return jsonify({"status": "ok"})
        except Exception as e:
            print(traceback.format_exc())
            return self._failed(str(e), 500)

    def logout(self):
        session.pop(SESSION_LOGGED_IN, None)
        session.pop(SESSION_USERNAME, None)
        session.pop(SESSION_PENDING_USERNAME, None)
        session.pop(SESSION_CHALLENGE, None)
        return jsonify({"status": "ok"})

    # ==========================================
    # Ceremony completion
    # ==========================================

    def _finish_registration(self, data, user, expected_challenge):
        try:
            verification = verify_registration_response(
                credential=data,
                expected_challenge=base64url_to_bytes(expected_challenge),
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
                require_user_verification=self.require_user_verification,
            )
        except WebAuthnException as e:
            self._log(f"attestation rejected: {e}")
            return self._failed("Can not authenticate signature!", 401, detail=str(e))

        credential_id = bytes_to_base64url(verification.credential_id)
        authenticators = user.setdefault("authenticators", [])
        if any(normalize_credential_id(a["credID"]) == credential_id for a in authenticators):
            return self._failed("Authenticator already registered", 400)

        try:
            public_key_pem = cose_key_to_pem(verification.credential_public_key)
        except (KeyError, ValueError) as e:
            self._log(f"no PEM form for credential public key: {e}")
            public_key_pem = None

        transports = data["response"].get("transports") or []
        authenticators.append(
            {
                "credID": credential_id,
                "publicKey": bytes_to_base64url(verification.credential_public_key),
                "publicKeyPem": public_key_pem,
                "counter": verification.sign_count,
                "fmt": getattr(verification.fmt, "value", verification.fmt),
                "aaguid": verification.aaguid,
                "transports": [t for t in transports if t in KNOWN_TRANSPORTS],
                "createdAt": _utcnow(),
            }
        )
        self.store.put(user[self.username_field], user)
        self._log(f"authenticator {credential_id[:12]}... registered")
        return None

    def _finish_authentication(self, data, user, expected_challenge):
        credential_id = normalize_credential_id(data["rawId"])
        authenticator = None
        for candidate in user.get("authenticators", []):
            if normalize_credential_id(candidate["credID"]) == credential_id:
                authenticator = candidate
                break

        if authenticator is None:
            return self._failed("Unknown credential", 401)

        try:
            verification = verify_authentication_response(
                credential=data,
                expected_challenge=base64url_to_bytes(expected_challenge),
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
                credential_public_key=base64url_to_bytes(authenticator["publicKey"]),
                credential_current_sign_count=authenticator["counter"],
                require_user_verification=self.require_user_verification,
            )
        except WebAuthnException as e:
            self._log(f"assertion rejected: {e}")
            return self._failed("Can not authenticate signature!", 401, detail=str(e))

        authenticator["counter"] = verification.new_sign_count
        authenticator["lastUsedAt"] = _utcnow()
        self.store.put(user[self.username_field], user)
        return None

    # ==========================================
    # Helpers
    # ==========================================

    def _username_from(self, data):
        username = data.get(self.username_field) if isinstance(data, dict) else None
        if not isinstance(username, str) or not username.strip():
            return None
        return username.strip()

    def _is_session_user(self, username):
        return bool(session.get(SESSION_LOGGED_IN)) and session.get(SESSION_USERNAME) == username

    def _display_name(self, user):
        for key in ("displayName", "name"):
            if isinstance(user.get(key), str) and user[key]:
                return user[key]
        return user[self.username_field]

    @staticmethod
    def _is_credential_body(data):
        if not isinstance(data, dict):
            return False
        return (
            isinstance(data.get("id"), str)
            and bool(data["id"])
            and isinstance(data.get("rawId"), str)
            and bool(data["rawId"])
            and isinstance(data.get("response"), dict)
            and data.get("type") == "public-key"
        )

    @staticmethod
    def _credential_descriptors(user):
        descriptors = []
        for authenticator in user.get("authenticators", []):
            transports = [
                AuthenticatorTransport(t)
                for t in authenticator.get("transports", [])
                if t in KNOWN_TRANSPORTS
            ]
            descriptors.append(
                PublicKeyCredentialDescriptor(
                    id=base64url_to_bytes(authenticator["credID"]),
                    transports=transports or None,
                )
            )
        return descriptors

    @staticmethod
    def _options_response(options):
        body = json.loads(options_to_json(options))
        body["status"] = "ok"
        return jsonify(body)

    @staticmethod
    def _failed(message, status_code, detail=None):
        body = {"status": "failed", "message": message}
        if detail:
            body["detail"] = detail
        return jsonify(body), status_code

    def _log(self, message):
        if self.enable_logging:
            print(f"[webauthn] {message}")
