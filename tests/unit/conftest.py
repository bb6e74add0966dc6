"""Shared fixtures for unit tests."""

import logging

import pytest

from mindy.bootstrap.config import ServerConfig


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them."""
    logger = logging.getLogger("mindy")
    old_propagate = logger.propagate
    logger.propagate = True
    yield
    logger.propagate = old_propagate


@pytest.fixture(name="document_root")
def fixture_document_root(tmp_path):
    """A document root holding an index page and one other page."""
    root = tmp_path / "www"
    root.mkdir()
    (root / "index.html").write_bytes(b"<h1>home</h1>\n")
    (root / "page.html").write_bytes(b"<h1>page</h1>\n")
    (tmp_path / "secret.txt").write_bytes(b"top secret\n")
    return root


@pytest.fixture(name="config")
def fixture_config(document_root):
    """ServerConfig pointing at the temporary document root."""
    return ServerConfig(
        root_dir=document_root.as_posix(),
        default_document="index.html",
        bind_address="127.0.0.1",
        port=0,
        shutdown_grace_seconds=2,
    )
