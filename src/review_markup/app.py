"""Application bootstrap for Review Markup."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from PyQt6.QtWidgets import QApplication

from .core.config import DEFAULT_CONFIG_PATH, ConfigManager
from .ui.editor_window import AnnotationEditor, create_gateway

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(prog="review-markup", description="Mark up a review image.")
    parser.add_argument("image", help="Image or video frame to annotate")
    parser.add_argument("--file-id", default="", help="Storage id of the image (defaults to the file name)")
    parser.add_argument("--server", default=None, help="Review server API root, e.g. https://host/api")
    parser.add_argument("--token", default=None, help="Bearer token for the review server")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Path to the YAML config file")
    return parser.parse_args(argv)


def create_application() -> QApplication:
    """
    Create and configure the Qt application.

    Returns:
        Configured QApplication instance
    """
    app = QApplication(sys.argv)
    app.setApplicationName("Review Markup")
    app.setApplicationVersion("1.0.0")
    app.setOrganizationName("Review Markup")
    return app


def create_editor(args: argparse.Namespace) -> AnnotationEditor:
    """
    Create the editor window.

    Server and token flags only apply to this session and are never
    written back to the config file.

    Returns:
        AnnotationEditor instance
    """
    config_manager = ConfigManager(Path(args.config))
    gateway = create_gateway(config_manager.config, server_url=args.server, token=args.token)
    return AnnotationEditor(config_manager, gateway=gateway)


def run(argv: Optional[List[str]] = None) -> int:
    """
    Run the Review Markup editor.

    Returns:
        Exit code
    """
    args = parse_args(argv)
    logger.info("Starting Review Markup")

    try:
        app = create_application()
        editor = create_editor(args)
        editor.show()
        editor.open(args.image, args.file_id or Path(args.image).name)
        logger.info("Editor shown")

        return app.exec()

    except Exception as e:
        logger.error(f"Application error: {e}", exc_info=True)
        return 1


def main() -> None:
    """Main entry point for the application."""
    sys.exit(run())


if __name__ == "__main__":
    main()
