"""
Opano — Entry Point.

`python main.py` builds the seeded workspace state and logs what it holds.
"""

import logging

from opano.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from opano.bootstrap import create_app_state

if __name__ == "__main__":
    app = create_app_state()
    active = app.active_conversation
    logging.getLogger("opano").info(
        "Signed in as %s; active conversation: %s",
        app.current_user.name if app.current_user else "nobody",
        active.name if active else "none",
    )
