# SPDX-License-Identifier: Apache-2.0

"""Fenceline: access rule administration for geospatial data services."""

__version__ = "0.1.0"
