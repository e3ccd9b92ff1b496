"""Unit tests and testing tools for the tunnel_client package."""

import os

TEST_TUNNEL_URL = os.environ.get("TUNNEL_URL", "https://tunnel.example.com")
TEST_TOKEN = "7b0c5c56-3d5e-4f4f-9f2e-9a3e2a9c1d11"
TEST_DOMAIN = "example.com"
TEST_NAME = "foo"
