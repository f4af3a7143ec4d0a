"""Configuration management for Review Markup."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Default configuration file path
DEFAULT_CONFIG_PATH = Path("review_markup.yaml")


@dataclass
class EditorConfig:
    """
    Markup editor settings.

    Geometry-related values (hit margin, character width, arrow head) are
    in natural image units; the renderer scales them with the image.
    """

    server_url: str = ""  # Empty means annotations are kept in memory only
    auth_token: str = ""
    request_timeout_ms: int = 10000
    load_path: str = "/files/{target_id}"  # GET, relative to server_url
    save_path: str = "/files/{target_id}/annotations"  # POST, relative to server_url
    default_color: str = "#ff0000"
    stroke_width: int = 2
    font_size: int = 16  # Text tool font size
    fill_color: str = ""  # Empty means no fill
    opacity: float = 1.0
    highlight_color: str = "#ffff00"
    highlight_opacity: float = 0.35
    hit_margin: float = 5.0
    text_char_width: float = 8.0  # Estimated glyph advance for text hit-testing
    arrow_head_length: float = 10.0
    selection_color: str = "#00ff00"
    selection_glow_width: float = 10.0
    max_history_entries: int = 100  # Maximum undo/redo snapshots (10-1000)
    max_recent_images: int = 10  # Number of recent images to remember (0 = disabled)
    recent_images: list[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "serverUrl": self.server_url,
            "authToken": self.auth_token,
            "requestTimeoutMs": self.request_timeout_ms,
            "loadPath": self.load_path,
            "savePath": self.save_path,
            "defaultColor": self.default_color,
            "strokeWidth": self.stroke_width,
            "fontSize": self.font_size,
            "fillColor": self.fill_color,
            "opacity": self.opacity,
            "highlightColor": self.highlight_color,
            "highlightOpacity": self.highlight_opacity,
            "hitMargin": self.hit_margin,
            "textCharWidth": self.text_char_width,
            "arrowHeadLength": self.arrow_head_length,
            "selectionColor": self.selection_color,
            "selectionGlowWidth": self.selection_glow_width,
            "maxHistoryEntries": self.max_history_entries,
            "maxRecentImages": self.max_recent_images,
            "recentImages": self.recent_images,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EditorConfig:
        """Create config from dictionary."""
        return cls(
            server_url=data.get("serverUrl", ""),
            auth_token=data.get("authToken", ""),
            request_timeout_ms=data.get("requestTimeoutMs", 10000),
            load_path=data.get("loadPath", "/files/{target_id}"),
            save_path=data.get("savePath", "/files/{target_id}/annotations"),
            default_color=data.get("defaultColor", "#ff0000"),
            stroke_width=data.get("strokeWidth", 2),
            font_size=data.get("fontSize", 16),
            fill_color=data.get("fillColor", ""),
            opacity=data.get("opacity", 1.0),
            highlight_color=data.get("highlightColor", "#ffff00"),
            highlight_opacity=data.get("highlightOpacity", 0.35),
            hit_margin=data.get("hitMargin", 5.0),
            text_char_width=data.get("textCharWidth", 8.0),
            arrow_head_length=data.get("arrowHeadLength", 10.0),
            selection_color=data.get("selectionColor", "#00ff00"),
            selection_glow_width=data.get("selectionGlowWidth", 10.0),
            max_history_entries=data.get("maxHistoryEntries", 100),
            max_recent_images=data.get("maxRecentImages", 10),
            recent_images=data.get("recentImages", []),
        )

    def add_recent_image(self, path: str) -> None:
        """Move a path to the front of the recent images list."""
        if self.max_recent_images <= 0:
            self.recent_images = []
            return
        self.recent_images = [p for p in self.recent_images if p != path]
        self.recent_images.insert(0, path)
        del self.recent_images[self.max_recent_images:]


class ConfigManager:
    """
    Manager for loading and saving editor configuration.

    Handles YAML serialization and provides a clean interface
    for configuration access.
    """

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Optional[EditorConfig] = None

    @property
    def config(self) -> EditorConfig:
        """Get the current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> EditorConfig:
        """
        Load configuration from file.

        Returns:
            EditorConfig instance with loaded or default values
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            return EditorConfig()

        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                logger.error(f"Config file {self.config_path} is not a mapping, using defaults")
                return EditorConfig()
            logger.info(f"Loaded configuration from {self.config_path}")
            return EditorConfig.from_dict(data)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file: {e}")
            return EditorConfig()
        except OSError as e:
            logger.error(f"Error loading config: {e}")
            return EditorConfig()

    def save(self, config: Optional[EditorConfig] = None) -> bool:
        """
        Save configuration to file.

        Args:
            config: Configuration to save, or use current config

        Returns:
            True if save was successful
        """
        if config is not None:
            self._config = config

        if self._config is None:
            logger.warning("No configuration to save")
            return False

        try:
            with open(self.config_path, "w") as f:
                yaml.dump(self._config.to_dict(), f, default_flow_style=False)
            logger.info(f"Saved configuration to {self.config_path}")
            return True
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error saving config: {e}")
            return False

    def update(self, **kwargs: Any) -> None:
        """
        Update configuration with new values.

        Args:
            **kwargs: Key-value pairs to update
        """
        config = self.config
        for key, value in kwargs.items():
            if hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning(f"Unknown config key: {key}")
        self.save()
