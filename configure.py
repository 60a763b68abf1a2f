#!/usr/bin/env python3
"""
WebAuthn Router Configuration Helper
Asks for the deployment settings and prints (or saves) the environment
variables the service reads at startup.
"""

import datetime
import os
import secrets
import sys
from urllib.parse import urlparse

STORE_BACKENDS = {
    "1": "memory",
    "2": "sqlite",
}


def generate_secret_key():
    """Generate a secure random secret key"""
    return secrets.token_hex(32)


def build_env_lines(origin, rp_name, store_backend="memory", db_path=None, secret_key=None):
    """Return the ``KEY=value`` lines for a deployment.

    Raises ValueError for an origin without scheme and host or an unknown
    store backend.
    """
    parsed = urlparse(origin or "")
    if not parsed.scheme or not parsed.hostname:
        raise ValueError(f"Origin must look like https://example.com, got {origin!r}")
    if store_backend not in STORE_BACKENDS.values():
        raise ValueError(f"Unknown store backend: {store_backend!r}")

    lines = [
        f"WEBAUTHN_ORIGIN={origin.rstrip('/')}",
        f"WEBAUTHN_RP_NAME={rp_name}",
        f"WEBAUTHN_STORE={store_backend}",
        f"SECRET_KEY={secret_key or generate_secret_key()}",
    ]
    if store_backend == "sqlite":
        lines.append(f"DB_PATH={db_path or './webauthn.db'}")
    return lines


def main():
    print("=" * 70)
    print("  WEBAUTHN ROUTER - Configuration Setup")
    print("=" * 70)
    print()

    print("Step 1: Origin")
    print("-" * 70)
    print("Enter the origin browsers will use (e.g., https://yourdomain.com)")
    print("For local testing, use: http://localhost:3000")
    origin = input("Origin: ").strip()
    print()

    print("Step 2: Relying party name")
    print("-" * 70)
    rp_name = input("Name shown by authenticators (default: OWASP Org.): ").strip() or "OWASP Org."
    print()

    print("Step 3: Credential store")
    print("-" * 70)
    print("  1. In-memory (lost on restart)")
    print("  2. SQLite file")
    store_backend = STORE_BACKENDS.get(input("Choice (1-2): ").strip(), "memory")
    db_path = None
    if store_backend == "sqlite":
        db_path = input("Database path (default: ./webauthn.db): ").strip() or "./webauthn.db"
    print()

    try:
        lines = build_env_lines(origin, rp_name, store_backend, db_path)
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print("=" * 70)
    print("  ENVIRONMENT")
    print("=" * 70)
    for line in lines:
        key, value = line.split("=", 1)
        print(f"  export {key}='{value}'")
    print()

    save = input("Save configuration to .env file? (y/n): ").strip().lower()
    if save == "y":
        with open(".env", "w") as f:
            f.write("# WebAuthn Router Configuration\n")
            f.write(f"# Generated on {datetime.datetime.now().isoformat()}\n\n")
            f.write("\n".join(lines) + "\n")
        print("Configuration saved to .env file. Keep it out of version control.")

        if not os.path.exists(".gitignore"):
            with open(".gitignore", "w") as f:
                f.write(".env\n*.db\n__pycache__/\n*.pyc\n")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n\nConfiguration cancelled.")
        sys.exit(0)
