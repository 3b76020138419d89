"""
Configuration management for the collage engine
Loads settings from YAML files with environment variable overrides
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv
from loguru import logger


class TemplateSizeConfig(BaseModel):
    """Cell sizes for the ring templates, in template units (px at 1x)"""
    regular: float
    center: float
    base_radius: float
    margin: float = 8.0


DEFAULT_TEMPLATE_SIZES: Dict[str, TemplateSizeConfig] = {
    'small': TemplateSizeConfig(regular=24, center=48, base_radius=30),
    'medium': TemplateSizeConfig(regular=32, center=64, base_radius=45),
    'large': TemplateSizeConfig(regular=40, center=80, base_radius=60),
    'xlarge': TemplateSizeConfig(regular=60, center=120, base_radius=90),
}


class AppConfig(BaseModel):
    """Main application configuration"""

    ENV: str = "development"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/collage.log"

    # Output
    OUTPUT_FOLDER: str = "exports"

    # Rendering
    BASE_CELL_PX: float = 100.0
    DESIRED_GAP_PX: float = 4.0
    BACKGROUND: str = "#ffffff"
    DPI: int = 300
    DEVICE_PIXEL_RATIO: float = 1.0
    MIN_DEVICE_SCALE: float = 2.0
    MAX_DEVICE_SCALE: float = 4.0

    # Optimization
    OPTIMIZE_ENABLED: bool = True
    OPTIMIZE_COMPRESS_LEVEL: int = 9

    # Image loading
    REQUEST_TIMEOUT: float = 30.0

    # Templates
    DEFAULT_TEMPLATE: str = "square"
    GRID_SIZE: str = "xlarge"
    TEMPLATE_SIZES: Dict[str, TemplateSizeConfig] = Field(
        default_factory=lambda: dict(DEFAULT_TEMPLATE_SIZES)
    )

    def template_size(self, name: Optional[str] = None) -> TemplateSizeConfig:
        """Size preset by name, falling back to the configured GRID_SIZE"""
        name = name or self.GRID_SIZE
        if name not in self.TEMPLATE_SIZES:
            logger.warning(f"Unknown grid size '{name}', using xlarge")
            return self.TEMPLATE_SIZES.get('xlarge', DEFAULT_TEMPLATE_SIZES['xlarge'])
        return self.TEMPLATE_SIZES[name]


def load_yaml_config(file_path: str) -> Dict:
    """Load configuration from YAML file"""
    path = Path(file_path)
    if not path.exists():
        logger.debug(f"Config file not found: {file_path}")
        return {}

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except Exception as e:
        logger.error(f"Error loading config file {file_path}: {e}")
        return {}


def load_config(environment: str = None, config_dir: str = "config") -> AppConfig:
    """Load configuration with environment-specific overrides"""

    load_dotenv()
    environment = environment or os.getenv('COLLAGE_ENV', 'development')

    base_config = load_yaml_config(f"{config_dir}/settings.yaml")
    env_config = load_yaml_config(f"{config_dir}/settings_{environment}.yaml")

    # env file overrides base
    config_dict = {**base_config, **env_config}

    env_overrides = {
        'ENV': environment,
        'LOG_LEVEL': os.getenv('COLLAGE_LOG_LEVEL'),
        'LOG_FILE': os.getenv('COLLAGE_LOG_FILE'),
        'OUTPUT_FOLDER': os.getenv('COLLAGE_OUTPUT_FOLDER'),
        'DPI': os.getenv('COLLAGE_DPI'),
        'DEVICE_PIXEL_RATIO': os.getenv('COLLAGE_DEVICE_PIXEL_RATIO'),
        'OPTIMIZE_ENABLED': os.getenv('COLLAGE_OPTIMIZE_ENABLED'),
    }

    env_overrides = {k: v for k, v in env_overrides.items() if v is not None}
    config_dict.update(env_overrides)

    if 'DEBUG' not in config_dict:
        config_dict['DEBUG'] = environment == 'development'

    try:
        return AppConfig(**config_dict)
    except Exception as e:
        logger.error(f"Configuration validation error: {e}")
        return AppConfig()


_config_instance = None

def get_config() -> AppConfig:
    """Get the global configuration instance"""
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it"""
    global _config_instance
    _config_instance = None
