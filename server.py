import logging
import os

from api._shared import get_orchestrator
from api.index import app

logging.basicConfig(level=logging.INFO)


def main() -> None:
    orchestrator = get_orchestrator()
    status = orchestrator.load()
    logging.getLogger("api").info("[Server] initial load: %s", status)
    orchestrator.start_polling()
    port = int(os.environ.get("PORT", "8000"))
    try:
        app.run(host="0.0.0.0", port=port, debug=False)
    finally:
        orchestrator.stop()


if __name__ == "__main__":
    main()
