"""
Configuration loading and management for LDIF Import.

This module handles loading configuration from YAML files and environment variables,
and turns the resulting settings into an immutable ImportConfig for a single run.
"""

import os
import yaml
import logging
from dataclasses import dataclass
from typing import Dict, Any, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing required fields."""
    pass


def parse_endpoint(endpoint: Optional[str]) -> Tuple[str, int]:
    """
    Split an endpoint of the form ``host:port`` on its first colon.
    
    Args:
        endpoint: Endpoint string
    
    Returns:
        Tuple of (host, port)
    
    Raises:
        ConfigurationError: If the host or port is missing or the port is not numeric
    """
    if not endpoint or not endpoint.strip():
        raise ConfigurationError("Missing required field: endpoint")
    
    host, sep, port_text = endpoint.strip().partition(':')
    if not host:
        raise ConfigurationError(f"Endpoint has no host: {endpoint}")
    if not sep or not port_text:
        raise ConfigurationError(f"Endpoint has no port: {endpoint}")
    
    try:
        port = int(port_text)
    except ValueError:
        raise ConfigurationError(f"Endpoint port is not numeric: {endpoint}")
    
    if not 0 < port < 65536:
        raise ConfigurationError(f"Endpoint port out of range: {port}")
    
    return host, port


@dataclass(frozen=True)
class ImportConfig:
    """Settings for one LDIF import run."""
    
    host: str
    port: int
    source_path: str
    bind_dn: Optional[str] = None
    password: Optional[str] = None
    use_ssl: bool = False
    connect_timeout: int = 10
    receive_timeout: int = 10
    encoding: str = 'utf-8'
    
    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"
    
    @property
    def has_credentials(self) -> bool:
        """True when both a bind DN and a password were supplied."""
        return bool(self.bind_dn) and self.password is not None
    
    def __repr__(self) -> str:
        return (f"ImportConfig(endpoint={self.endpoint!r}, source_path={self.source_path!r}, "
                f"bind_dn={self.bind_dn!r}, use_ssl={self.use_ssl})")
    
    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> 'ImportConfig':
        """
        Build an ImportConfig from plain key/value settings.
        
        Recognised keys are ``endpoint``, ``bindDn``, ``password`` and ``file``,
        plus the optional ``use_ssl``, ``connect_timeout``, ``receive_timeout``
        and ``encoding``.
        
        Args:
            settings: Mapping of setting names to values
        
        Returns:
            Validated ImportConfig
        
        Raises:
            ConfigurationError: If any setting is missing or malformed
        """
        errors = []
        
        host, port = None, None
        try:
            host, port = parse_endpoint(settings.get('endpoint'))
        except ConfigurationError as e:
            errors.append(str(e))
        
        source_path = settings.get('file')
        if not source_path:
            errors.append("Missing required field: file")
        
        timeouts = {}
        for field in ('connect_timeout', 'receive_timeout'):
            value = settings.get(field, 10)
            try:
                timeouts[field] = int(value)
            except (TypeError, ValueError):
                errors.append(f"Invalid value for {field}: {value!r}")
        
        if errors:
            raise ConfigurationError("Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors))
        
        bind_dn = settings.get('bindDn') or None
        password = settings.get('password')
        if bind_dn and password is None:
            logger.warning("bindDn given without a password, the import will run unauthenticated")
        elif password is not None and not bind_dn:
            logger.warning("password given without a bindDn, the import will run unauthenticated")
        
        return cls(
            host=host,
            port=port,
            source_path=str(source_path),
            bind_dn=bind_dn,
            password=None if password is None else str(password),
            use_ssl=bool(settings.get('use_ssl', False)),
            connect_timeout=timeouts['connect_timeout'],
            receive_timeout=timeouts['receive_timeout'],
            encoding=settings.get('encoding') or 'utf-8',
        )


class ConfigLoader:
    """Handles loading and validation of application configuration."""
    
    # Environment variable mappings for sensitive fields
    ENV_OVERRIDES = {
        'password': 'LDAP_BIND_PASSWORD',
    }
    
    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize config loader.
        
        Args:
            config_path: Path to config file. If None, uses CONFIG_PATH env var or 'config.yaml'
        """
        self.config_path = config_path or os.getenv('CONFIG_PATH', 'config.yaml')
        self.config = {}
    
    def load(self) -> Dict[str, Any]:
        """
        Load configuration from file and apply environment overrides.
        
        Returns:
            Parsed and validated configuration dictionary
        
        Raises:
            ConfigurationError: If config file not found or validation fails
        """
        try:
            with open(self.config_path, 'r') as f:
                self.config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        
        if not isinstance(self.config, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {self.config_path}")
        
        self._apply_env_overrides()
        self._validate()
        self._apply_defaults()
        
        logger.info(f"Configuration loaded successfully from {self.config_path}")
        return self.config
    
    def _apply_env_overrides(self):
        """Apply environment variable overrides for sensitive fields."""
        for config_key, env_var in self.ENV_OVERRIDES.items():
            env_value = os.getenv(env_var)
            if env_value:
                self.config[config_key] = env_value
                logger.debug(f"Applied environment override for {config_key}")
    
    def _validate(self):
        """Validate required configuration fields."""
        errors = []
        
        for field in ('endpoint', 'file'):
            if not self.config.get(field):
                errors.append(f"Missing required field: {field}")
        
        logging_config = self.config.get('logging', {})
        if logging_config is not None and not isinstance(logging_config, dict):
            errors.append("logging section must be a mapping")
        
        if errors:
            raise ConfigurationError("Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors))
    
    def _apply_defaults(self):
        """Apply default values for optional configuration fields."""
        import_defaults = {
            'use_ssl': False,
            'connect_timeout': 10,
            'receive_timeout': 10,
            'encoding': 'utf-8'
        }
        for key, value in import_defaults.items():
            self.config.setdefault(key, value)
        
        logging_defaults = {
            'level': 'INFO',
            'log_dir': None,
            'rotation': 'daily',
            'retention_days': 7
        }
        logging_config = self.config.get('logging') or {}
        self.config['logging'] = logging_config
        for key, value in logging_defaults.items():
            logging_config.setdefault(key, value)


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Convenience function to load configuration.
    
    Args:
        config_path: Path to config file
    
    Returns:
        Loaded configuration dictionary
    """
    loader = ConfigLoader(config_path)
    return loader.load()
