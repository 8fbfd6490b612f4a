"""Opening URLs in the user's browser."""

import webbrowser

from structlog import get_logger


logger = get_logger(__name__)


def open_browser(url: str) -> bool:
    """Open ``url`` in the default browser.

    Returns:
        True if a browser was launched; False on headless machines, where the
        caller should print the URL instead

    """
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as e:
        logger.debug("browser_open_failed", error=str(e))
        return False
    if not opened:
        logger.debug("browser_unavailable")
    return opened
