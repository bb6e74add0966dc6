"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"

INDEX_BODY = b"<html><body><h1>index</h1></body></html>\n"
ABOUT_BODY = b"<html><body><h1>about</h1></body></html>\n"


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    directory: Path
    process: subprocess.Popen[str]
    log_file: Path


def write_config(
    path: Path,
    root_dir: Path,
    host: str,
    port: int,
    log_file: Path,
    debug: int = 0,
) -> Path:
    """Write a key/value configuration file for a server under test."""

    path.write_text(
        "\n".join(
            [
                f"root_dir {root_dir.as_posix()}",
                "default_html index.html",
                f"ip_address {host}",
                f"port {port}",
                f"logfile {log_file.as_posix()}",
                f"debug {debug}",
            ]
        )
        + "\n"
    )
    return path


def populate_document_root(directory: Path) -> Path:
    """Create the documents the integration tests request."""

    directory.mkdir(parents=True, exist_ok=True)
    (directory / "index.html").write_bytes(INDEX_BODY)
    (directory / "about.html").write_bytes(ABOUT_BODY)
    (directory / "data.bin").write_bytes(bytes(range(256)) * 64)
    return directory


def _launch_server(
    workdir: Path,
    host: str,
    port: int,
    extra_args: list[str] | None = None,
) -> Generator[ServerProcessInfo, None, None]:
    directory = populate_document_root(workdir / "www")
    log_file = workdir / "logs" / "server.log"
    config_path = write_config(workdir / "config.conf", directory, host, port, log_file)
    args = [sys.executable, str(SERVER_ENTRYPOINT), "--config", str(config_path)]
    if extra_args:
        args.extend(extra_args)

    with subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        try:
            wait_for_port(host, port)
        except Exception:
            # If startup failed, print stdout/stderr to help debug
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            raise

        yield {
            "base_url": f"http://{host}:{port}",
            "host": host,
            "port": port,
            "directory": directory,
            "process": process,
            "log_file": log_file,
        }

        if process.poll() is None:
            process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="server_process")
def _server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the server in a background process for integration tests."""

    host = "127.0.0.1"
    port = reserve_port(host)
    workdir = tmp_path_factory.mktemp("mindy")
    yield from _launch_server(workdir, host, port, ["--shutdown-grace-seconds", "5"])


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
