"""
Preview engine test configuration.

Tests that execute the runtime headlessly need a `node` binary; they use the
`node_sandbox` fixture and are skipped when node is not on PATH.
"""

import shutil

import pytest

from engine.preview.sandbox import NodeSandbox
from engine.preview.types import SourceFile


@pytest.fixture
def node_sandbox():
    if shutil.which("node") is None:
        pytest.skip("node is not installed")
    return NodeSandbox(node_binary="node", timeout_seconds=10)


@pytest.fixture
def make_files():
    """Build a snapshot from {path: content}, preserving insertion order."""

    def _make(mapping):
        return [SourceFile(path=path, content=content) for path, content in mapping.items()]

    return _make
