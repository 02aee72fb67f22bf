"""
pytest configuration and fixtures for the gateway packet codec tests.

Provides:
- sys.path setup so tests import the modules in tools/
- Sample payload bodies and packet builders
- Hypothesis property-based testing profiles
"""

import os
import sys
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings

# Add project paths
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from packet_codec import Identifier  # noqa: E402
from packet_samples import GATEWAY_ID, header  # noqa: E402


# Configure Hypothesis profiles

# Default profile: balanced speed and coverage
settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
)

# CI profile: more thorough testing
settings.register_profile(
    "ci",
    max_examples=500,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)

# Dev profile: fast iteration
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
)

# Debug profile: verbose output
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)

settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


@pytest.fixture
def push_data():
    """Build a PUSH_DATA datagram around a body."""
    def build(body: bytes = b'', gateway_id: bytes = GATEWAY_ID) -> bytes:
        return header(Identifier.PUSH_DATA) + gateway_id + body
    return build


@pytest.fixture
def pull_resp():
    """Build a PULL_RESP datagram around a body."""
    def build(body: bytes = b'') -> bytes:
        return header(Identifier.PULL_RESP) + body
    return build


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "assumption: pins down behaviour the protocol leaves open"
    )
