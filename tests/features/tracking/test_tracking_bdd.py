"""BDD tests for page view tracking.

Step definitions are in conftest.py.
"""

import pytest
from pytest_bdd import scenarios

scenarios("tracking.feature")

pytestmark = pytest.mark.tier(2)
