import os
import sys

import pytest

if 'QT_QPA_PLATFORM' not in os.environ:
    os.environ['QT_QPA_PLATFORM'] = 'offscreen'

from PyQt5.QtWidgets import QApplication


@pytest.fixture(scope='session')
def qapp():
    """Qt application shared by tests that create widgets."""
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv[:1])
    return app
