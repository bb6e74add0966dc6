"""Context object shared across worker threads."""

from dataclasses import dataclass
from typing import Optional

from mindy.bootstrap.config import ServerConfig
from mindy.lifecycle.state import ServerLifecycle


@dataclass
class WorkerContext:
    """Dependencies shared across handler threads."""

    config: ServerConfig
    lifecycle: Optional[ServerLifecycle] = None
