from __future__ import annotations

import os
import sys

import uvicorn

# Ensure project root is on sys.path when running as a script
_THIS_DIR = os.path.dirname(__file__)
_PROJECT_ROOT = os.path.abspath(os.path.join(_THIS_DIR, os.pardir))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from taskstore.config import load_config  # noqa: E402
from taskstore.factory import build_service  # noqa: E402
from taskstore.gateway.app import create_app  # noqa: E402
from taskstore.storage.memory import MemoryBlobStore  # noqa: E402


def main() -> None:
    """Serve the API against an in-process store; nothing is persisted across restarts."""
    cfg = load_config({"TASKSTORE_BACKEND": "memory"})
    service = build_service(cfg, store=MemoryBlobStore(b"[]"))
    app = create_app(service, cors_origins=cfg.cors_origins)
    server = uvicorn.Server(
        uvicorn.Config(app, host=cfg.host, port=cfg.port, log_config=None)
    )
    server.run()


if __name__ == "__main__":
    main()
