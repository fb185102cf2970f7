#!/usr/bin/env python3
"""
Local launcher for the HTTP Relay Gateway.
Runs the gateway from the project root without installing the package.
"""

import sys
from pathlib import Path

# Add the src directory to Python path
src_dir = Path(__file__).parent / "src"
sys.path.insert(0, str(src_dir))


def main():
    """Run the HTTP Relay Gateway server with debug logging."""
    import uvicorn
    from relay_gateway.core.config import settings
    from relay_gateway.main import app

    print("Starting HTTP Relay Gateway locally...")
    print(f"Access at: http://{settings.HOST}:{settings.PORT}")
    print(f"Health check: http://{settings.HOST}:{settings.PORT}/api/health")
    print(f"Relay: http://{settings.HOST}:{settings.PORT}/api/proxy?url=https://httpbin.org/get")

    # Reload stays off so breakpoints keep working
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level="debug",
        reload=False,
    )


if __name__ == "__main__":
    main()
