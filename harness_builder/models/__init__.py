"""Data models for harness-builder."""

from .app import AndroidApp
from .build import BuildConfiguration
from .signing import SigningIdentity

__all__ = ["AndroidApp", "BuildConfiguration", "SigningIdentity"]
