"""Root conftest: makes the fixtures package importable and shares its fixtures."""
import sys
from pathlib import Path

# Test modules import helpers from fixtures.conftest directly
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from fixtures.conftest import *
