#!/usr/bin/env python3
"""
Generate secure secrets for Liga Prode
Run this script to generate SECRET_KEY and a database password
"""

import secrets


def generate_secrets():
    """Generate secure random values for the .env file"""
    print("🔐 Generating secure secrets for Liga Prode...")
    print("=" * 50)

    print(f"SECRET_KEY={secrets.token_urlsafe(32)}")
    print(f"DB_PASSWORD={secrets.token_urlsafe(24)}")

    print("=" * 50)
    print("📝 Copy these values to your .env file")
    print("⚠️  Keep these secrets secure and never commit them to version control!")


if __name__ == "__main__":
    generate_secrets()
