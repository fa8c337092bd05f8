#!/usr/bin/env python
"""Start the bridge API, its job worker and scheduler."""
import uvicorn

from bunjang_bridge.core.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    print(f"Starting bunjang-shopify-bridge on port {settings.PORT}")

    uvicorn.run(
        "bunjang_bridge.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
