#!/usr/bin/env python3
"""
Core engine scope only. Do not implement beyond this file's responsibilities.
API entrypoint - validates configuration, prepares the database and serves the edit webhook.
"""

import sys
from pathlib import Path

# Load environment variables from .env file first
import dotenv
dotenv.load_dotenv()

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

def main():
    """Validate configuration and start the API server."""
    import uvicorn
    from phasegate.core.config import API_HOST, API_PORT, validate_engine_config
    from phasegate.core.db import init_db

    issues = validate_engine_config()
    if issues:
        for issue in issues:
            print(f"❌ {issue}")
        return 1

    init_db()

    try:
        uvicorn.run("phasegate.api.main:app", host=API_HOST, port=API_PORT)
    except KeyboardInterrupt:
        print("\nℹ️  API server interrupted")
    return 0

if __name__ == "__main__":
    sys.exit(main())
