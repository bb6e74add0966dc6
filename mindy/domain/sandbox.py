"""Map request URIs onto files inside the document root."""

from pathlib import Path, PurePosixPath


class ForbiddenPath(Exception):
    """Raised when a requested path escapes the configured document root."""


def document_name(uri: str, default_document: str) -> str:
    """Pick the file name a URI refers to: the default document for ``/``."""
    if uri == "/":
        return default_document
    return uri[1:] if uri.startswith("/") else uri


def resolve_document_path(root_dir: str, default_document: str, uri: str) -> Path:
    """Resolve ``root_dir + "/" + name`` and refuse anything outside the root."""
    name = document_name(uri, default_document)
    if "\x00" in name:
        raise ForbiddenPath
    if ".." in PurePosixPath(name).parts:
        raise ForbiddenPath

    root = Path(root_dir).resolve()
    target = Path(f"{root_dir}/{name}").resolve()
    if not (target == root or root in target.parents):
        raise ForbiddenPath

    return target
