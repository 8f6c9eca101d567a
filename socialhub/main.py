import uvicorn

from socialhub.core.app_factory import create_app
from socialhub.core.config import settings

app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "socialhub.main:app",
        host=settings.app.host,
        port=settings.app.port,
        reload=settings.app.debug,
    )
