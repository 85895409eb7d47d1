import logging
import sys
from pathlib import Path

import pytest

# Put 'scripts' on sys.path so tests can import the modules without installing
ROOT = Path(__file__).resolve().parents[1]
scripts = ROOT / "scripts"
if str(scripts) not in sys.path:
    sys.path.insert(0, str(scripts))


@pytest.fixture(autouse=True)
def restore_root_logger():
    # main() reconfigures the root logger; undo it between tests
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
