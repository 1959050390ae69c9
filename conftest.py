import os
import sys
from pathlib import Path

SRC = Path(__file__).resolve().parent / 'src'
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def pytest_configure(config):
    config.addinivalue_line('markers', 'slow: large-input tests skipped when PITGEO_SKIP_SLOW is set')


def pytest_collection_modifyitems(config, items):
    """Deselect tests marked ``slow`` when PITGEO_SKIP_SLOW is set.

    The large spatial index runs take a few seconds each; quick local runs
    can leave them out without touching the test files.
    """
    if not os.environ.get('PITGEO_SKIP_SLOW'):
        return

    removed = []
    kept = []
    for item in items:
        if item.get_closest_marker('slow') is not None:
            removed.append(item)
        else:
            kept.append(item)

    if removed:
        config.hook.pytest_deselected(items=removed)
        items[:] = kept
        tr = config.pluginmanager.get_plugin('terminalreporter')
        if tr:
            tr.write_sep('-', f'Deselected {len(removed)} slow tests (PITGEO_SKIP_SLOW)')
