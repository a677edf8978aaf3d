from __future__ import annotations

import uvicorn

from taskstore.config import load_config
from taskstore.factory import build_service
from taskstore.gateway.app import create_app
from taskstore.observability import get_json_logger


def main() -> None:
    cfg = load_config()
    app = create_app(build_service(cfg), cors_origins=cfg.cors_origins)
    get_json_logger("taskstore").info(
        "server starting",
        extra={"event": "server_start", "attributes": {"host": cfg.host, "port": cfg.port}},
    )
    # log_config=None keeps the handlers installed by configure_uvicorn_logging
    uvicorn.run(app, host=cfg.host, port=cfg.port, log_config=None)


if __name__ == "__main__":
    main()
