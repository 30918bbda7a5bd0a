import logging
from http import HTTPStatus
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_INDEX = Path(__file__).resolve().parent / "panel" / "index.html"
INDEX_PATHS = ("/", "/index.html")


class ControlPanel:
    """
    Plain-HTTP responder sharing the relay port (websockets ``process_request`` hook).

    WebSocket upgrades pass through to the relay; everything else is a GET
    for the control panel page or a 404.
    """

    def __init__(self, index_path: Union[str, Path, None] = None):
        self.index_path = Path(index_path) if index_path else DEFAULT_INDEX

    def __call__(self, connection, request):
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None

        path = request.path.split("?", 1)[0]
        logger.info(f"HTTP Request: {path}")

        if path not in INDEX_PATHS:
            return connection.respond(HTTPStatus.NOT_FOUND, "404 - Not Found\n")

        page = self._read_page()
        if page is None:
            return connection.respond(
                HTTPStatus.NOT_FOUND,
                f"404 - Control panel not found. Expected it at {self.index_path}\n",
            )

        response = connection.respond(HTTPStatus.OK, page)
        del response.headers["Content-Type"]
        response.headers["Content-Type"] = "text/html; charset=utf-8"
        return response

    def _read_page(self) -> Optional[str]:
        try:
            return self.index_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Error reading control panel: {e}")
            return None
