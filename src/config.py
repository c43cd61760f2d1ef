"""
Configuration module for Plinko Lab
Board geometry, playback cadence, authority endpoint and logging settings
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

PRODUCTION_API_URL = 'https://plinko-bakend-1.onrender.com'
DEVELOPMENT_API_URL = 'http://localhost:5000'

SECTIONS = ('api', 'network', 'playback', 'board', 'game', 'logging')


class ConfigError(Exception):
    """Raised when settings are unusable"""
    pass


def _env_number(
    name: str,
    default: Union[int, float],
    cast: Callable[[str], Union[int, float]] = int,
    lo: Optional[Union[int, float]] = None,
    hi: Optional[Union[int, float]] = None,
) -> Union[int, float]:
    """
    Read a numeric environment variable, clamped to [lo, hi].
    Unparseable values log a warning and yield the default.
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        logging.getLogger(__name__).warning(f"Ignoring {name}={raw!r}, using {default}")
        return default
    if lo is not None and value < lo:
        value = lo
    if hi is not None and value > hi:
        value = hi
    return value


def _env_flag(name: str) -> bool:
    return os.getenv(name, '').strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """
    Settings grouped in sections:
    - BOARD, GAME, LOGGING: class-level defaults
    - API, NETWORK, PLAYBACK, FILES: resolved from the environment on access
    - per-instance overrides from set() or a JSON file, merged by section()
    """

    # ========== Board Geometry ==========
    BOARD = {
        'rows': 12,
        'width': 600,
        'height': 500,
        'bin_offset': 20,  # terminal bin sits this far above the bottom edge
        'max_column': 12,
    }

    # ========== Game Defaults ==========
    GAME = {
        'default_drop_column': 6,
        'default_bet': '1.00',
        'client_seed_length': 26,
    }

    # ========== Logging Settings ==========
    LOGGING = {
        'level': os.getenv('LOG_LEVEL', 'INFO'),
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'date_format': '%Y-%m-%d %H:%M:%S',
        'max_bytes': 5 * 1024 * 1024,
        'backup_count': 3,
        'console_output': True,
        'json_logs': _env_flag('PLINKO_JSON_LOGS'),
    }

    # ========== API Settings ==========
    @classmethod
    def get_api_config(cls) -> dict:
        """Round authority base URL for the current PLINKO_ENV"""
        environment = os.getenv('PLINKO_ENV', 'development').strip().lower()
        fallback = PRODUCTION_API_URL if environment == 'production' else DEVELOPMENT_API_URL
        base_url = os.getenv('PLINKO_API_URL') or fallback
        return {'environment': environment, 'base_url': base_url.rstrip('/')}

    # ========== Network Settings ==========
    @classmethod
    def get_network_config(cls) -> dict:
        """Total seconds allowed per authority call"""
        return {'timeout': _env_number('PLINKO_NETWORK_TIMEOUT', 10.0, float, lo=0.1)}

    # ========== Playback Settings ==========
    @classmethod
    def get_playback_config(cls) -> dict:
        """Animation cadence in seconds; the environment gives milliseconds"""
        def seconds(name: str, default_ms: int) -> float:
            return _env_number(name, default_ms, int, lo=0, hi=10_000) / 1000

        return {
            'lead_in': seconds('PLINKO_LEAD_IN_MS', 500),
            'tick_interval': seconds('PLINKO_TICK_INTERVAL_MS', 300),
            'settle_delay': seconds('PLINKO_SETTLE_DELAY_MS', 300),
        }

    # ========== File Settings ==========
    @classmethod
    def get_files_config(cls) -> dict:
        """Per-user directories, resolved lazily so importing stays cheap"""
        home = Path(os.getenv('PLINKO_CONFIG_DIR', str(Path.home() / '.plinko_lab')))
        return {
            'config_dir': home,
            'log_dir': Path(os.getenv('PLINKO_LOG_DIR', str(home / 'logs'))),
        }

    API = property(lambda self: self.get_api_config())
    NETWORK = property(lambda self: self.get_network_config())
    PLAYBACK = property(lambda self: self.get_playback_config())

    def __init__(self, config_file: Optional[str] = None, validate: bool = True):
        """
        Args:
            config_file: JSON file of {section: {key: value}} overrides
            validate: Run validate() immediately
        """
        self.config_file = config_file
        self._overrides: Dict[str, Dict[str, Any]] = {}
        self._files: Optional[dict] = None
        self._logger: Optional[logging.Logger] = None

        if config_file:
            self.load_from_file(config_file)
        if validate:
            self.validate()

    @property
    def FILES(self) -> dict:
        """File locations, computed once per instance"""
        if self._files is None:
            self._files = self.get_files_config()
        return self._files

    def set_logger(self, logger: logging.Logger):
        """Attach the application logger once logging is configured"""
        self._logger = logger

    def _log(self, level: int, message: str):
        if self._logger:
            self._logger.log(level, message)

    # ========== Access ==========

    def section(self, name: str) -> Dict[str, Any]:
        """
        One section with overrides applied

        Raises:
            ConfigError: For an unknown section name
        """
        key = name.lower()
        if key not in SECTIONS:
            raise ConfigError(f"Unknown configuration section: {name}")
        return {**getattr(self, key.upper()), **self._overrides.get(key, {})}

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Single value, or default when the section or key is missing"""
        try:
            return self.section(section).get(key, default)
        except ConfigError:
            return default

    def set(self, section: str, key: str, value: Any):
        """Override one value on this instance"""
        self._overrides.setdefault(section.lower(), {})[key] = value

    def to_dict(self) -> dict:
        """Every section, plus file locations as strings"""
        data = {name: self.section(name) for name in SECTIONS}
        data['files'] = {k: str(v) for k, v in self.FILES.items()}
        return data

    # ========== Validation ==========

    def validate(self):
        """
        Check every section; all problems are reported together

        Raises:
            ConfigError: If any value is unusable
        """
        problems = []

        board = self.section('board')
        if board['rows'] < 1:
            problems.append("rows must be positive")
        if board['width'] <= 0 or board['height'] <= 0:
            problems.append("Board dimensions must be positive")
        if not 0 <= board['bin_offset'] < board['height']:
            problems.append("bin_offset must lie inside the board")
        if board['max_column'] != board['rows']:
            problems.append("max_column must equal rows")

        playback = self.section('playback')
        problems.extend(
            f"{key} cannot be negative"
            for key in ('lead_in', 'tick_interval', 'settle_delay')
            if playback[key] < 0
        )

        if self.section('network')['timeout'] <= 0:
            problems.append("Network timeout must be positive")

        base_url = self.section('api')['base_url']
        if not base_url.startswith(('http://', 'https://')):
            problems.append(f"Invalid API base URL: {base_url}")

        level = str(self.section('logging')['level']).upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            problems.append(f"Invalid log level: {level}")

        if problems:
            raise ConfigError("Configuration validation failed:\n" + "\n".join(problems))

    # ========== Persistence ==========

    def load_from_file(self, filepath: Union[str, Path]):
        """
        Replace overrides with the sections found in a JSON file.
        A missing file is logged and ignored.

        Raises:
            ConfigError: If the file is not a JSON object
        """
        path = Path(filepath)
        if not path.exists():
            self._log(logging.WARNING, f"Config file not found: {path}")
            return

        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            self._log(logging.ERROR, f"Invalid JSON in config file {path}: {e}")
            raise ConfigError(f"Invalid JSON in config file: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a JSON object: {path}")

        self._overrides = {
            name.lower(): dict(values) for name, values in data.items() if isinstance(values, dict)
        }
        self._log(logging.INFO, f"Loaded configuration from {path}")

    def save_to_file(self, filepath: Union[str, Path]):
        """Write every section except file locations as JSON"""
        path = Path(filepath)
        data = self.to_dict()
        del data['files']

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, default=str))
        self._log(logging.INFO, f"Saved configuration to {path}")


# Global configuration instance. Importing this module must stay side-effect
# free; logging setup and validation happen in main.py.
config = Config(validate=False)
