"""
Configuration management for the FotoTrap field station.

This module defines a dataclass ``Config`` that holds configuration for the
station software. It can be loaded from a YAML file or constructed manually.
The configuration covers station identity, camera and positioning backend
selection, capture quality, location timeout and fallback, and logging.

Example YAML configuration (config/station.yaml):

```yaml
station_id: "wrangel-01"
camera_backend: "rpi"        # "mock" on development machines
camera_facing: "environment"
camera_width: 1920
camera_height: 1080
jpeg_quality: 90
location_backend: "http"     # "mock" or "none"
positioning_url: "http://127.0.0.1:8080/location"
location_timeout: 10         # seconds
fallback_location:
  lat: 70.6638
  lng: 147.9152
fallback_on_commit: true
new_trap_model: "Identifying..."
seed_demo_data: false
log_file: "./station_data/fototrap.log"
```

Using the ``Config.from_yaml`` method simplifies loading configuration:

```python
from fototrap.config import Config
config = Config.from_yaml('config/station.yaml')
```
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict

import yaml

from .location.base import Coordinate

DEFAULT_FALLBACK = Coordinate(lat=70.6638, lng=147.9152)

CAMERA_BACKENDS = ('mock', 'rpi')
LOCATION_BACKENDS = ('mock', 'http', 'none')


@dataclass
class Config:
    """Configuration settings for the FotoTrap field station."""

    station_id: str
    camera_backend: str = 'mock'
    camera_facing: str = 'environment'
    camera_width: int = 1920
    camera_height: int = 1080
    jpeg_quality: int = 90  # Pillow scale, 1-95
    location_backend: str = 'mock'
    positioning_url: str = 'http://127.0.0.1:8080/location'
    location_timeout: float = 10.0  # seconds
    fallback_location: Coordinate = DEFAULT_FALLBACK
    fallback_on_commit: bool = True
    new_trap_model: str = 'Identifying...'
    seed_demo_data: bool = False
    log_file: str = './fototrap.log'

    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.camera_backend not in CAMERA_BACKENDS:
            raise ValueError(f'Unknown camera backend: {self.camera_backend}')
        if self.location_backend not in LOCATION_BACKENDS:
            raise ValueError(f'Unknown location backend: {self.location_backend}')
        if not 1 <= self.jpeg_quality <= 95:
            raise ValueError(f'jpeg_quality must be between 1 and 95, got {self.jpeg_quality}')
        if self.location_timeout <= 0:
            raise ValueError('location_timeout must be positive')

    @classmethod
    def from_yaml(cls, path: str) -> 'Config':
        """Load configuration from a YAML file.

        Raises:
            FileNotFoundError: if the YAML file cannot be found.
            yaml.YAMLError: if the YAML file is invalid.
            KeyError: if required keys are missing.
            ValueError: if a value is out of range or a backend is unknown.
        """
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        required_keys = ['station_id']
        missing = [k for k in required_keys if k not in data]
        if missing:
            raise KeyError(f'Missing required configuration keys: {missing}')

        fallback = data.get('fallback_location')
        if fallback is None:
            fallback_location = DEFAULT_FALLBACK
        else:
            try:
                fallback_location = Coordinate(lat=float(fallback['lat']), lng=float(fallback['lng']))
            except (TypeError, KeyError, ValueError):
                raise ValueError(f'fallback_location must have numeric lat and lng, got {fallback!r}')

        return cls(
            station_id=str(data['station_id']),
            camera_backend=data.get('camera_backend', 'mock'),
            camera_facing=data.get('camera_facing', 'environment'),
            camera_width=int(data.get('camera_width', 1920)),
            camera_height=int(data.get('camera_height', 1080)),
            jpeg_quality=int(data.get('jpeg_quality', 90)),
            location_backend=data.get('location_backend', 'mock'),
            positioning_url=data.get('positioning_url', 'http://127.0.0.1:8080/location'),
            location_timeout=float(data.get('location_timeout', 10.0)),
            fallback_location=fallback_location,
            fallback_on_commit=bool(data.get('fallback_on_commit', True)),
            new_trap_model=data.get('new_trap_model', 'Identifying...'),
            seed_demo_data=bool(data.get('seed_demo_data', False)),
            log_file=data.get('log_file', './fototrap.log'),
            extra={k: v for k, v in data.items() if k not in cls.__annotations__},
        )

    def ensure_paths(self) -> None:
        """Ensure that the log file directory exists.

        This method is idempotent.
        """
        log_dir = os.path.dirname(self.log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)
