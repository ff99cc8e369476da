"""Standalone launcher for the Material Remapper form."""

import logging
import sys
from typing import Optional, Sequence

from .logging_utils import configure_logging
from .qt_compat import QT_BINDING, QApplication, run_event_loop
from .ui import MaterialRemapperView

logger = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Show the form and run the Qt event loop until it closes."""
    configure_logging()
    app = QApplication.instance() or QApplication(list(argv or sys.argv))
    view = MaterialRemapperView(logger=logger)
    view.show()
    logger.debug("Material Remapper form shown (%s).", QT_BINDING)
    return run_event_loop(app)


if __name__ == "__main__":
    sys.exit(main())
