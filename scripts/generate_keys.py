#!/usr/bin/env python3
"""
Generate TAP signing keys for the Sentinel gateway.

Prints .env lines for an Ed25519 key pair (base64 seed and public key)
and, with --rsa, an RSA-PSS key pair as escaped PEM.

Usage:
    python scripts/generate_keys.py --key-id k1 >> .env
    python scripts/generate_keys.py --key-id k1 --rsa
"""

import argparse

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from sentinel.tap.keys import generate_ed25519_keypair, public_key_pem


def _escape_pem(pem: str) -> str:
    return pem.strip().replace("\n", "\\n")


def generate_rsa_keys(key_size: int = 2048) -> tuple[str, str]:
    """
    Generate an RSA key pair for rsa-pss-sha256 signing.

    Returns:
        Tuple of (private key PEM, public key PEM)
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    return private_pem, public_key_pem(private_key)


def main():
    parser = argparse.ArgumentParser(description="Generate TAP signing keys as .env lines")
    parser.add_argument("--key-id", default="k1", help="Key id registered for the agent")
    parser.add_argument("--rsa", action="store_true", help="Use rsa-pss-sha256 instead of ed25519")
    args = parser.parse_args()

    print(f"TAP_KEY_ID={args.key_id}")
    if args.rsa:
        private_pem, public_pem = generate_rsa_keys()
        print("TAP_ALG=rsa-pss-sha256")
        print(f'RSA_PRIVATE_KEY="{_escape_pem(private_pem)}"')
        print(f'RSA_PUBLIC_KEY="{_escape_pem(public_pem)}"')
    else:
        seed_b64, public_b64 = generate_ed25519_keypair()
        print("TAP_ALG=ed25519")
        print(f"ED25519_PRIVATE_KEY={seed_b64}")
        print(f"ED25519_PUBLIC_KEY={public_b64}")


if __name__ == "__main__":
    main()
