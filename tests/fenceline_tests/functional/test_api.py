"""Gabbi test loader for the Fenceline API.

gabbi's HTTPTestCase is patched to read the server port from the
FENCELINE_TEST_PORT environment variable at request time, so each worker
process can serve on its own dynamically allocated port.
"""

import os

from gabbi import case, driver
from oslotest import output

from fenceline_tests.functional.local_fixtures import gabbits as fixtures
from fenceline_tests.local_fixtures import logging as capture


_original_parse_url = case.HTTPTestCase._parse_url


def _patched_parse_url(self, url):
    """Read the port from FENCELINE_TEST_PORT before building the URL."""
    env_port = os.environ.get('FENCELINE_TEST_PORT')
    if env_port:
        self.port = int(env_port)
    return _original_parse_url(self, url)


case.HTTPTestCase._parse_url = _patched_parse_url


TESTS_DIR = "gabbits"

# Placeholder used during discovery. Ports below 1024 need root, so a test
# that somehow kept it would fail instead of hitting a stray server.
PLACEHOLDER_PORT = 42


def load_tests(loader, tests, pattern):
    """Provide a TestSuite to the discovery process.

    Args:
        loader: unittest.TestLoader instance
        tests: Existing TestSuite (ignored, Gabbi builds its own)
        pattern: Pattern for test discovery (ignored)

    Returns:
        TestSuite containing Gabbi tests generated from YAML files
    """
    test_dir = os.path.join(os.path.dirname(__file__), TESTS_DIR)
    inner_fixtures = [
        output.CaptureOutput,
        capture.Logging,
    ]
    return driver.build_tests(
        test_dir,
        loader,
        host='127.0.0.1',
        port=PLACEHOLDER_PORT,
        test_loader_name=__name__,
        inner_fixtures=inner_fixtures,
        fixture_module=fixtures,
    )
