import uvicorn

from oauth_portal.app import create_app
from oauth_portal.core.config import get_settings

app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=3001,
        reload=not settings.is_production,
        log_config=None,
    )
