"""Shared fixtures for BDD feature tests."""

from __future__ import annotations
