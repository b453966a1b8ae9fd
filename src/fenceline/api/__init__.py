# SPDX-License-Identifier: Apache-2.0

from fenceline.api.app import create_app  # noqa: F401
