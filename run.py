#!/usr/bin/env python3
"""
Vault Ledger Entry Point

Starts the FastAPI server with the vault ledger.
"""

import sys

from vault_ledger.config import get_config
from vault_ledger.api import run_server


if __name__ == "__main__":
    config = get_config()
    print("Starting Vault Ledger...")
    print(f"Withdraw limit: {config.withdraw_limit}, bank cap: {config.bank_cap}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=False
        )
    except KeyboardInterrupt:
        print("\nShutting down Vault Ledger...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
