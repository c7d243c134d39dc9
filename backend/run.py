import uvicorn
import os
import sys

# Add the current directory to sys.path to ensure app module can be found
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

if __name__ == "__main__":
    from app.core.config import settings

    # reload_dirs: Only watch app/ directory to avoid reloads from test file changes
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        reload_dirs=["app"]
    )
