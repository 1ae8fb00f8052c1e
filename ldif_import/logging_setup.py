"""
Logging setup and configuration for LDIF Import.

This module provides centralized logging configuration: console output,
optional rotating log files, and scrubbing of credentials from every record.
"""

import os
import re
import logging
import logging.handlers
from typing import Dict, Any, Optional


class SensitiveDataFilter(logging.Filter):
    """Filter to scrub sensitive data from log messages."""
    
    SENSITIVE_KEYWORDS = [
        'password', 'bind_password', 'userPassword', 'unicodePwd', 'secret',
        'credential', 'pwd', 'authorization', 'token'
    ]
    
    def filter(self, record):
        """Filter out sensitive data from log records."""
        if hasattr(record, 'msg'):
            msg = record.getMessage() if record.args else str(record.msg)
            
            for keyword in self.SENSITIVE_KEYWORDS:
                # key=value and key: value
                pattern1 = rf'(\b{keyword}\s*[=:]\s*)(?!\*\*\*\*)[^\s,;\'"]+'
                msg = re.sub(pattern1, r'\1****', msg, flags=re.IGNORECASE)
                
                # "key": "value" and 'key': 'value' in dumped mappings
                pattern2 = rf'([\'"]{keyword}[\'"]\s*:\s*[\'"])[^\'"]*([\'"])'
                msg = re.sub(pattern2, r'\1****\2', msg, flags=re.IGNORECASE)
            
            record.msg = msg
            record.args = None
        
        return True


class LoggingManager:
    """
    Manages logging configuration for the LDIF Import application.
    
    Provides console output and, when a log directory is configured,
    file-based logging with daily rotation.
    """
    
    def __init__(self):
        self.configured = False
        self.log_dir = None
        self.retention_days = 7
    
    def setup_logging(self, config: Optional[Dict[str, Any]]) -> None:
        """
        Set up logging based on configuration.
        
        Args:
            config: Logging configuration dictionary
        """
        if self.configured:
            return
        
        logging_config = config if config else {}
        
        log_level = str(logging_config.get('level', 'INFO')).upper()
        self.log_dir = logging_config.get('log_dir')
        rotation = logging_config.get('rotation', 'daily')
        self.retention_days = logging_config.get('retention_days', 7)
        console_enabled = logging_config.get('console_output', True)
        console_level = str(logging_config.get('console_level', log_level)).upper()
        
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level, logging.INFO))
        root_logger.handlers.clear()
        
        detailed_formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        
        console_formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%H:%M:%S'
        )
        
        sensitive_filter = SensitiveDataFilter()
        
        if self.log_dir:
            self._ensure_log_directory()
            file_handler = self._create_file_handler(rotation)
            file_handler.setLevel(getattr(logging, log_level, logging.INFO))
            file_handler.setFormatter(detailed_formatter)
            file_handler.addFilter(sensitive_filter)
            root_logger.addHandler(file_handler)
        
        if console_enabled:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(getattr(logging, console_level, logging.INFO))
            console_handler.setFormatter(console_formatter)
            console_handler.addFilter(sensitive_filter)
            root_logger.addHandler(console_handler)
        
        self.configured = True
        
        logger = logging.getLogger(__name__)
        logger.debug(f"Logging configured: level={log_level}, dir={self.log_dir}, "
                     f"retention={self.retention_days} days, console={console_enabled}")
    
    def _ensure_log_directory(self) -> None:
        """Ensure the log directory exists."""
        if not os.path.exists(self.log_dir):
            os.makedirs(self.log_dir, exist_ok=True)
    
    def _create_file_handler(self, rotation: str) -> logging.Handler:
        """
        Create appropriate file handler based on rotation setting.
        
        Args:
            rotation: Rotation setting ('daily', 'midnight', or 'none')
        
        Returns:
            Configured logging handler
        """
        log_file = os.path.join(self.log_dir, 'ldif_import.log')
        
        if str(rotation).lower() in ['daily', 'midnight']:
            handler = logging.handlers.TimedRotatingFileHandler(
                filename=log_file,
                when='midnight',
                interval=1,
                backupCount=self.retention_days,
                encoding='utf-8'
            )
            handler.suffix = '%Y-%m-%d'
        else:
            handler = logging.FileHandler(log_file, encoding='utf-8')
        
        return handler


# Global logging manager instance
_logging_manager = LoggingManager()


def setup_logging(config: Optional[Dict[str, Any]]) -> None:
    """
    Convenience function to set up logging.
    
    Args:
        config: Logging configuration dictionary
    """
    _logging_manager.setup_logging(config)


class SecurityAuditLogger:
    """Special logger for security-related events."""
    
    def __init__(self):
        self.logger = logging.getLogger('security')
    
    def log_authentication_attempt(self, system: str, username: str, success: bool):
        """Log authentication attempts."""
        status = "SUCCESS" if success else "FAILURE"
        self.logger.info(f"Authentication {status}: {system} user={username}")
    
    def log_configuration_access(self, config_file: str):
        """Log configuration file access."""
        self.logger.info(f"Configuration loaded: {config_file}")


# Global security logger instance
security_logger = SecurityAuditLogger()
