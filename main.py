"""Log telemetry server: ingests client/server log events and serves aggregates."""

import logging
import os
import sys

from logtelemetry.app import create_app
from logtelemetry.config import Config


def main():
    config = Config(os.environ.get("CONFIG_PATH", "config.yaml"))

    logging.basicConfig(
        level=getattr(logging, str(config["logging"]["level"]).upper(), logging.INFO),
        format="%(asctime)s [log-telemetry] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)
    logger.info(
        "Starting log telemetry server on %s:%d, store=%s",
        config["server"]["host"], config["server"]["port"], config["storage"]["path"],
    )

    app = create_app(config)
    app.run(
        host=config["server"]["host"],
        port=config["server"]["port"],
        debug=config["server"]["debug"],
    )


if __name__ == "__main__":
    main()
