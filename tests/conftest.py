#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

"""Pytest configuration for cgigate tests."""

import os
import sys

# Add the tests directory to sys.path so test support modules can be
# imported by name (e.g. 'from support import FakeRequest')
tests_dir = os.path.dirname(os.path.abspath(__file__))
if tests_dir not in sys.path:
    sys.path.insert(0, tests_dir)
