# SPDX-License-Identifier: Apache-2.0

"""Development server for the Fenceline API.

Production deployments run ``fenceline.wsgi.api:application`` under a WSGI
server such as uWSGI or gunicorn instead.

Usage:
    fenceline-api [--config-file fenceline.conf]
"""

from __future__ import annotations

import sys

from oslo_config import cfg
from oslo_log import log as logging

from fenceline import conf
from fenceline.api import app

CONF = cfg.CONF
LOG = logging.getLogger(__name__)


def main() -> int:
    """Parse configuration and serve the API until interrupted.

    :returns: exit code
    """
    logging.register_options(CONF)
    try:
        CONF(sys.argv[1:], project="fenceline")
    except cfg.ConfigFilesNotFoundError:
        CONF(sys.argv[1:], project="fenceline", default_config_files=[])
    logging.setup(CONF, "fenceline")

    flask_app = app.create_app(config=conf.to_app_config(CONF))
    LOG.info("Serving Fenceline API on %s:%d with the %s rule store",
             CONF.api.bind_host, CONF.api.bind_port, CONF.database.backend)
    flask_app.run(
        host=CONF.api.bind_host,
        port=CONF.api.bind_port,
        debug=CONF.debug,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
