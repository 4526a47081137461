"""
Configuration management.
"""

import os
from dataclasses import asdict, dataclass, field
from typing import Optional


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


def _env_int(name: str, default: str) -> int:
    return int(os.getenv(name, default))


def _env_list(name: str) -> tuple:
    return tuple(item.strip().lower() for item in os.getenv(name, "").split(",") if item.strip())


@dataclass
class LayoutConfig:
    """
    Page layout and pagination parameters.

    The row capacities are tuned to one page size and font, so they are
    configurable rather than fixed. All lengths are millimetres.
    """

    # Summary pages
    summary_rows_per_page: int = field(default_factory=lambda: _env_int("SUMMARY_ROWS_PER_PAGE", "26"))
    summary_blank_row_cap: int = field(default_factory=lambda: _env_int("SUMMARY_BLANK_ROW_CAP", "21"))
    summary_totals_every_page: bool = field(
        default_factory=lambda: os.getenv("SUMMARY_TOTALS_EVERY_PAGE", "true").lower() == "true"
    )
    summary_top_padding: float = 10.0
    summary_side_padding: float = 10.0
    summary_bottom_margin: float = field(default_factory=lambda: _env_float("SUMMARY_BOTTOM_MARGIN", "30"))
    summary_row_height: float = 9.3
    extended_program_note: str = "Ext. program"

    # Detail pages
    standard_risk_rows: int = field(default_factory=lambda: _env_int("STANDARD_RISK_ROWS", "10"))
    extended_primary_risk_rows: int = field(default_factory=lambda: _env_int("EXTENDED_PRIMARY_RISK_ROWS", "5"))
    extended_risk_rows: int = field(default_factory=lambda: _env_int("EXTENDED_RISK_ROWS", "5"))
    detail_top_padding: float = 20.0
    detail_bottom_margin: float = field(default_factory=lambda: _env_float("DETAIL_BOTTOM_MARGIN", "10.5"))
    risk_row_height: float = 10.6
    photo_height: float = 53.0

    # Shrink steps used by the fit trimmer
    title_margin: float = 8.0
    title_margin_step: float = 1.5
    title_margin_floor: float = 1.5
    top_padding_step: float = 2.0
    top_padding_floor: float = 5.0
    max_fit_iterations: int = field(default_factory=lambda: _env_int("MAX_FIT_ITERATIONS", "100"))

    # Rendering
    page_width: float = 210.0
    page_height: float = 297.0
    side_padding: float = 20.0
    settle_delay: float = field(default_factory=lambda: _env_float("REPORT_SETTLE_DELAY", "0.05"))
    image_load_timeout: float = field(default_factory=lambda: _env_float("IMAGE_LOAD_TIMEOUT", "10"))
    font_path: Optional[str] = field(default_factory=lambda: os.getenv("REPORT_FONT_PATH"))
    district_tokens: tuple = ("district", "지구")

    def __post_init__(self):
        """Validate layout after initialization."""
        if self.summary_rows_per_page < 1:
            raise ValueError("summary_rows_per_page must be at least 1")
        if self.summary_blank_row_cap < 0:
            raise ValueError("summary_blank_row_cap must be non-negative")
        if self.max_fit_iterations < 1:
            raise ValueError("max_fit_iterations must be at least 1")

    @property
    def summary_usable_height(self) -> float:
        return self.page_height - self.summary_bottom_margin

    @property
    def detail_usable_height(self) -> float:
        return self.page_height - self.detail_bottom_margin

    @classmethod
    def load(cls) -> "LayoutConfig":
        """Load layout configuration from environment."""
        return cls()

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        data = asdict(self)
        data["district_tokens"] = list(self.district_tokens)
        return data


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")

    # Output
    output_dir: str = field(default_factory=lambda: os.getenv("REPORT_OUTPUT_DIR", "./reports"))

    # Image sources accepted over HTTP besides data URIs
    photo_root: Optional[str] = field(default_factory=lambda: os.getenv("PHOTO_ROOT") or None)
    image_hosts: tuple = field(default_factory=lambda: _env_list("IMAGE_HOSTS"))

    layout: LayoutConfig = field(default_factory=LayoutConfig.load)

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "output_dir": self.output_dir,
            "photo_root": self.photo_root,
            "image_hosts": list(self.image_hosts),
            "layout": self.layout.to_dict(),
        }
