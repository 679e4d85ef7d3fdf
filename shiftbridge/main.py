import uvicorn

from shiftbridge.api import create_app
from shiftbridge.config import settings

app = create_app()


def main() -> None:
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_config=None)


if __name__ == "__main__":
    main()
