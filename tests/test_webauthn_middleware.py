import json
import unittest

from flask import Flask

from stores import MemoryAdapter
from tests.soft_authenticator import SoftAuthenticator
from webauthn_middleware import Webauthn


class ConfigurationTests(unittest.TestCase):
    def test_defaults(self):
        webauthn = Webauthn(origin="http://localhost:3000/", store=MemoryAdapter(), rp_name="OWASP Org.")

        self.assertEqual(webauthn.origin, "http://localhost:3000")
        self.assertEqual(webauthn.rp_id, "localhost")
        self.assertEqual(webauthn.user_fields, {"username": "username"})
        self.assertFalse(webauthn.require_user_verification)

    def test_explicit_rp_id(self):
        webauthn = Webauthn(
            origin="https://login.example.com",
            store=MemoryAdapter(),
            rp_name="Example",
            rp_id="example.com",
        )
        self.assertEqual(webauthn.rp_id, "example.com")

    def test_invalid_origin(self):
        for origin in ("", None, "localhost:3000", "/relative"):
            with self.assertRaises(ValueError):
                Webauthn(origin=origin, store=MemoryAdapter(), rp_name="x")

    def test_store_must_be_an_adapter(self):
        with self.assertRaises(TypeError):
            Webauthn(origin="http://localhost", store={}, rp_name="x")

    def test_unknown_preferences(self):
        with self.assertRaises(ValueError):
            Webauthn(origin="http://localhost", store=MemoryAdapter(), rp_name="x", attestation="always")
        with self.assertRaises(ValueError):
            Webauthn(origin="http://localhost", store=MemoryAdapter(), rp_name="x", user_verification="maybe")
        with self.assertRaises(ValueError):
            Webauthn(
                origin="http://localhost",
                store=MemoryAdapter(),
                rp_name="x",
                authenticator_attachment="usb",
            )

    def test_empty_username_field(self):
        with self.assertRaises(ValueError):
            Webauthn(origin="http://localhost", store=MemoryAdapter(), rp_name="x", username_field="")


class CustomMountTests(unittest.TestCase):
    """The router honours custom endpoints, field names and user field mapping."""

    def setUp(self):
        self.store = MemoryAdapter()
        self.webauthn = Webauthn(
            origin="http://localhost:8080",
            store=self.store,
            rp_name="Custom RP",
            username_field="email",
            user_fields={"email": "email", "name": "displayName"},
            credential_endpoint="/attestation/options",
            assertion_endpoint="/assertion/options",
            challenge_endpoint="/result",
            logout_endpoint="/bye",
            attestation="direct",
            user_verification="discouraged",
        )

        self.app = Flask(__name__)
        self.app.secret_key = "test"
        self.app.register_blueprint(self.webauthn.initialize(), url_prefix="/auth")

        @self.app.route("/secret")
        @self.webauthn.authenticate(failure_redirect="/signin")
        def secret():
            return json.dumps(self.webauthn.current_user())

        self.client = self.app.test_client()
        self.authenticator = SoftAuthenticator("localhost", "http://localhost:8080")

    def post(self, path, payload):
        response = self.client.post(f"/auth{path}", json=payload)
        return response, json.loads(response.data)

    def test_custom_fields_and_endpoints(self):
        response, options = self.post(
            "/attestation/options", {"email": "ada@example.com", "name": "Ada", "role": "admin"}
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(options["rp"]["name"], "Custom RP")
        self.assertEqual(options["user"]["displayName"], "Ada")
        self.assertEqual(options["attestation"], "direct")

        record = self.store.get("ada@example.com")
        self.assertEqual(record["displayName"], "Ada")
        self.assertNotIn("role", record, "Only mapped fields should be stored")

        response, data = self.post("/result", self.authenticator.create(options["challenge"]))
        self.assertEqual(response.status_code, 200, data)

        secret = self.client.get("/secret")
        self.assertEqual(secret.status_code, 200)
        self.assertEqual(json.loads(secret.data)["email"], "ada@example.com")

    def test_missing_custom_username_field(self):
        response, data = self.post("/attestation/options", {"username": "ada"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(data["message"], "email required")

    def test_failure_redirect(self):
        response = self.client.get("/secret")

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.headers["Location"].endswith("/signin"))

    def test_logout_endpoint(self):
        _, options = self.post("/attestation/options", {"email": "ada@example.com"})
        self.post("/result", self.authenticator.create(options["challenge"]))
        self.assertEqual(self.client.get("/secret").status_code, 200)

        self.client.get("/auth/bye")

        self.assertEqual(self.client.get("/secret").status_code, 302)


if __name__ == "__main__":
    unittest.main()
