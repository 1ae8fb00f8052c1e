"""
Command line entry point for LDIF Import.

Settings come from an optional YAML configuration file and are overridden by
command line options; the result string of the run is printed to stdout.
"""

import sys
import logging
import argparse
from typing import Dict, Any, List, Optional

from ldif_import.config import load_config, ImportConfig, ConfigurationError
from ldif_import.importer import run_import, STATUS_PARTIAL
from ldif_import.logging_setup import setup_logging, security_logger

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_PARTIAL = 1
EXIT_CONFIG_ERROR = 2
EXIT_FAILED = 3
EXIT_UNEXPECTED = 4


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Import LDIF entries into an LDAP server')
    parser.add_argument('--config', '-c', help='Path to YAML configuration file')
    parser.add_argument('--endpoint', '-e', help='LDAP server as host:port')
    parser.add_argument('--file', '-f', help='Path to the LDIF file to import')
    parser.add_argument('--bind-dn', '-D', dest='bind_dn', help='DN to bind as')
    parser.add_argument('--password', '-w', help='Bind password (LDAP_BIND_PASSWORD overrides the config file value)')
    parser.add_argument('--use-ssl', action='store_true', default=None, help='Connect over LDAPS')
    parser.add_argument('--log-level', help='Log level (DEBUG, INFO, WARNING, ERROR)')
    return parser


def collect_settings(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Merge configuration file settings with command line overrides.
    
    Args:
        args: Parsed command line arguments
    
    Returns:
        Settings mapping suitable for ImportConfig.from_settings
    
    Raises:
        ConfigurationError: If the configuration file cannot be loaded
    """
    settings = {}
    if args.config:
        settings = load_config(args.config)
        security_logger.log_configuration_access(args.config)
    
    overrides = {
        'endpoint': args.endpoint,
        'file': args.file,
        'bindDn': args.bind_dn,
        'password': args.password,
        'use_ssl': args.use_ssl,
    }
    for key, value in overrides.items():
        if value is not None:
            settings[key] = value
    
    logging_config = dict(settings.get('logging') or {})
    if args.log_level:
        logging_config['level'] = args.log_level
    settings['logging'] = logging_config
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the application.
    
    Returns:
        Exit code (0 success, 1 completed with errors, 2 configuration error,
        3 import failed, 4 unexpected error)
    """
    args = build_parser().parse_args(argv)
    
    try:
        settings = collect_settings(args)
        setup_logging(settings['logging'])
        config = ImportConfig.from_settings(settings)
    except ConfigurationError as e:
        setup_logging(None)
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR
    
    try:
        report = run_import(config)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return EXIT_UNEXPECTED
    
    print(report.result)
    
    if report.succeeded:
        return EXIT_SUCCESS
    if report.status == STATUS_PARTIAL:
        return EXIT_PARTIAL
    return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
