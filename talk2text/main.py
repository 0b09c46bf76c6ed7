"""Main application entry point for talk2text."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from talk2text.exceptions import Talk2TextError
from talk2text.models.session import SessionState, Transport
from talk2text.services.publisher import SessionEventPublisher
from talk2text.services.session_controller import SessionController
from talk2text.ui.console import ConsoleTranscriptView

from .config import Talk2TextConfig

logger = logging.getLogger(__name__)


class App:
    """Runs one press-and-hold session from the command line."""

    def __init__(self, config_path: str, log_level: Optional[str] = None, transport: Optional[str] = None):
        self.config = Talk2TextConfig(config_path)
        # Command line overrides config
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self.session_config = self.config.session_config(transport)

        topic_root = self.config.get('events.topic_root', 'talk2text')
        self.view = ConsoleTranscriptView(topic_root)
        self.controller = SessionController(observer=SessionEventPublisher(topic_root))

    async def hold(self, duration: float) -> SessionState:
        """Press, hold for ``duration`` seconds (or until Ctrl+C), release."""
        try:
            state = await self.controller.start(self.session_config)
            if state is SessionState.ACTIVE:
                logger.info(f"Holding for {duration}s")
                await asyncio.sleep(duration)
        finally:
            await self.controller.stop()
        return state

    def run(self, duration: float) -> int:
        try:
            state = asyncio.run(self.hold(duration))
        except KeyboardInterrupt:
            state = SessionState.IDLE
        finally:
            self.view.show_final(self.controller.transcript)
            self.view.close()
        return 1 if state is SessionState.FAILED else 0


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/talk2text.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info("=" * 50)
    logger.info("talk2text starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for talk2text."""
    parser = argparse.ArgumentParser(
        description="talk2text - Press-and-hold real-time transcription",
        epilog="Simulates holding the talk button for --duration seconds; Ctrl+C releases early"
    )

    parser.add_argument(
        "--config",
        type=str,
        default="talk2text.yaml",
        help="Path to configuration YAML file (default: talk2text.yaml)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: logging.level from config, else INFO)"
    )

    parser.add_argument(
        "--duration",
        type=float,
        default=10,
        help="How long to hold the talk button, in seconds (default: 10)"
    )

    parser.add_argument(
        "--transport",
        type=str,
        choices=[t.value for t in Transport],
        help="Recognition transport (overrides transcription.transport)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="talk2text v0.1.0"
    )

    args = parser.parse_args()

    try:
        app = App(args.config, args.log_level, args.transport)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Configuration error: {e}")
        sys.exit(2)

    try:
        sys.exit(app.run(args.duration))
    except Talk2TextError as e:
        print(f"❌ {e.message}")
        logging.error(f"Application error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
