# SPDX-License-Identifier: Apache-2.0

"""WSGI entrypoint for the Fenceline API."""

from oslo_config import cfg
from oslo_log import log as logging

from fenceline import conf
from fenceline.api import app

CONF = cfg.CONF

logging.register_options(CONF)
CONF([], project="fenceline", default_config_files=None)
logging.setup(CONF, "fenceline")

# WSGI servers (gunicorn/uwsgi) should load this module path:
#   fenceline.wsgi.api:application
application = app.create_app(conf.to_app_config(CONF))
