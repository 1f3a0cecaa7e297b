import logging

from rich.console import Console
from rich.logging import RichHandler

# -------------------------------------------------
# Console with proper color handling
# -------------------------------------------------
console = Console(force_terminal=True, color_system="truecolor")


class CustomLogger:
    """
    Configures the root logger once with a Rich handler and hands out
    named loggers for the rest of the project.
    """

    _configured = False

    def __init__(self, level: int = logging.INFO):
        if not CustomLogger._configured:
            self._configure(level)
            CustomLogger._configured = True

    @staticmethod
    def _configure(level: int) -> None:
        logging.basicConfig(
            level=level,
            format="%(message)s",  # Rich handles formatting
            datefmt="[%H:%M:%S.%f]",
            handlers=[
                RichHandler(
                    console=console,
                    rich_tracebacks=True,
                    tracebacks_show_locals=False,
                    show_time=True,
                    show_level=True,
                    show_path=True,
                    log_time_format="%H:%M:%S.%f",
                )
            ],
        )

        # -------------------------------------------------
        # Silence noisy libraries
        # -------------------------------------------------
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.dialects").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.orm").setLevel(logging.WARNING)
        logging.getLogger("aiosqlite").setLevel(logging.WARNING)

        logging.getLogger("uvicorn").setLevel(logging.INFO)
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.error").setLevel(logging.INFO)

        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("groq").setLevel(logging.WARNING)

    def get_logger(self, name: str = "content_search") -> logging.Logger:
        return logging.getLogger(name)
