from __future__ import annotations

from taskstore.config import load_config
from taskstore.factory import build_service

from .app import create_app

_cfg = load_config()
app = create_app(build_service(_cfg), cors_origins=_cfg.cors_origins)
