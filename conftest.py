# conftest.py
import os

os.environ.setdefault("MPLBACKEND", "Agg")

import matplotlib  # noqa: E402


def pytest_configure():
    # Trace plots are rendered headless
    matplotlib.use("Agg", force=True)
