#!/usr/bin/env python3
"""Run the trade ledger HTTP server."""

import uvicorn
from dotenv import load_dotenv

if __name__ == "__main__":
    load_dotenv()

    # Imported after .env is loaded so the settings see it
    from src.ledger.api import create_app
    from src.ledger.config import LedgerConfig

    config = LedgerConfig.from_env()
    print("Starting Trade Ledger...")
    print(f"Storage: {config.storage.backend}  FX: {config.fx.base_url}")
    print("-" * 50)
    uvicorn.run(create_app(config=config), host=config.api.host, port=config.api.port)
