"""Test doubles for relay tests."""
