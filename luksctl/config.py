"""
luksctl Configuration Module
Supports loading from:
1. INI config file (/etc/luksctl/luksctl.conf)
2. Environment variables (override config file)
3. Default values (fallback)
"""

import os
from configparser import ConfigParser, Error as ConfigParserError
from typing import Any, Dict, Optional

from luksctl.exceptions import ConfigurationException
from luksctl.utils.logger import get_logger

LOG = get_logger(__name__)

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
LOG_FORMATS = ('text', 'json')


class LuksCtlConfig:
    """luksctl Configuration Manager"""

    CONFIG_FILE = '/etc/luksctl/luksctl.conf'
    SECTION = 'luksctl'

    # Default values
    DEFAULT_STATE_DIR = '/run/luksctl'
    DEFAULT_LOG_LEVEL = 'WARNING'
    DEFAULT_LOG_FORMAT = 'text'
    DEFAULT_CRYPTSETUP_BIN = 'cryptsetup'
    DEFAULT_MOUNT_BIN = 'mount'
    DEFAULT_UMOUNT_BIN = 'umount'

    # setting name -> (environment variable, default)
    SETTINGS = {
        'state_dir': ('LUKSCTL_STATE_DIR', DEFAULT_STATE_DIR),
        'log_level': ('LUKSCTL_LOG_LEVEL', DEFAULT_LOG_LEVEL),
        'log_format': ('LUKSCTL_LOG_FORMAT', DEFAULT_LOG_FORMAT),
        'log_file': ('LUKSCTL_LOG_FILE', None),
        'locale': ('LUKSCTL_LOCALE', None),
        'cryptsetup_bin': ('LUKSCTL_CRYPTSETUP_BIN', DEFAULT_CRYPTSETUP_BIN),
        'mount_bin': ('LUKSCTL_MOUNT_BIN', DEFAULT_MOUNT_BIN),
        'umount_bin': ('LUKSCTL_UMOUNT_BIN', DEFAULT_UMOUNT_BIN),
    }

    def __init__(self, **overrides):
        for name, (_, default) in self.SETTINGS.items():
            setattr(self, name, default)
        self.config_file = None
        for name, value in overrides.items():
            if name not in self.SETTINGS:
                raise ConfigurationException('errors.config_unknown_key', key=name)
            setattr(self, name, value)

    @classmethod
    def load(cls, config_file: Optional[str] = None,
             environ: Optional[Dict[str, str]] = None) -> 'LuksCtlConfig':
        """
        Load configuration with priority: env var > config file > default.

        Args:
            config_file: Path to config file (default: /etc/luksctl/luksctl.conf)
            environ: Environment mapping (default: os.environ)
        """
        environ = os.environ if environ is None else environ
        explicit = config_file is not None
        config_file = config_file or cls.CONFIG_FILE

        config_data = cls._load_ini_file(config_file, required=explicit)

        config = cls()
        config.config_file = config_file if config_data else None
        for name, (env_var, default) in cls.SETTINGS.items():
            value = environ.get(env_var, config_data.get(name, default))
            if value == '':
                value = default
            setattr(config, name, value)

        LOG.debug(f"Configuration loaded (file: {config.config_file or 'none'})")
        return config

    @classmethod
    def _load_ini_file(cls, config_file: str, required: bool = False) -> Dict[str, Any]:
        """
        Load configuration from INI file.

        Expected format:
        [luksctl]
        state_dir = /run/luksctl
        log_level = INFO
        log_format = json
        """
        config_data = {}

        if not os.path.exists(config_file):
            if required:
                raise ConfigurationException('errors.config_missing', path=config_file)
            LOG.debug(f"Config file not found: {config_file}, using defaults")
            return config_data

        parser = ConfigParser()
        try:
            parser.read(config_file)
        except ConfigParserError as e:
            LOG.error(f"Failed to load config file {config_file}: {e}")
            raise ConfigurationException('errors.config_invalid', path=config_file,
                                         error=str(e)) from e

        if parser.has_section(cls.SECTION):
            for key, value in parser.items(cls.SECTION):
                if key in cls.SETTINGS:
                    config_data[key] = value
                else:
                    LOG.warning(f"Ignoring unknown config key '{key}' in {config_file}")

        LOG.info(f"Loaded {len(config_data)} config parameters from {config_file}")
        return config_data

    def validate(self):
        """
        Validate configuration.

        Raises:
            ConfigurationException if configuration is invalid
        """
        if not self.state_dir or not os.path.isabs(self.state_dir):
            raise ConfigurationException('errors.config_state_dir', path=self.state_dir or '')

        if str(self.log_level).upper() not in LOG_LEVELS:
            raise ConfigurationException('errors.config_log_level', value=self.log_level)

        if self.log_format not in LOG_FORMATS:
            raise ConfigurationException('errors.config_log_format', value=self.log_format)

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.SETTINGS}
