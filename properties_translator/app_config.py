"""Application configuration module for the translation service."""
import logging
import os
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

import jsonschema
import yaml
from dotenv import load_dotenv

from properties_translator.exceptions import ConfigurationError
from properties_translator.logging_config import setup_logger

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024

# Used when config.yaml does not define supported_locales.
DEFAULT_SUPPORTED_LOCALES = [
    {"code": "ar", "name": "Arabic"},
    {"code": "cs", "name": "Czech"},
    {"code": "da", "name": "Danish"},
    {"code": "de", "name": "German"},
    {"code": "el", "name": "Greek"},
    {"code": "en", "name": "English"},
    {"code": "es", "name": "Spanish"},
    {"code": "fi", "name": "Finnish"},
    {"code": "fr", "name": "French"},
    {"code": "he", "name": "Hebrew"},
    {"code": "hi", "name": "Hindi"},
    {"code": "hu", "name": "Hungarian"},
    {"code": "id", "name": "Indonesian"},
    {"code": "it", "name": "Italian"},
    {"code": "ja", "name": "Japanese"},
    {"code": "ko", "name": "Korean"},
    {"code": "nl", "name": "Dutch"},
    {"code": "no", "name": "Norwegian"},
    {"code": "pl", "name": "Polish"},
    {"code": "pt", "name": "Portuguese"},
    {"code": "ro", "name": "Romanian"},
    {"code": "ru", "name": "Russian"},
    {"code": "sv", "name": "Swedish"},
    {"code": "th", "name": "Thai"},
    {"code": "tr", "name": "Turkish"},
    {"code": "uk", "name": "Ukrainian"},
    {"code": "vi", "name": "Vietnamese"},
    {"code": "zh", "name": "Chinese"},
]

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "supported_locales": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "code": {"type": "string", "pattern": "^[a-z]{2,3}$"},
                    "name": {"type": "string", "minLength": 1}
                },
                "required": ["code", "name"]
            }
        },
        "model_name": {"type": "string"},
        "max_concurrent_api_calls": {"type": "integer", "minimum": 1},
        "rate_limit": {"type": "integer", "minimum": 1},
        "rate_period": {"type": "number", "exclusiveMinimum": 0},
        "max_attempts": {"type": "integer", "minimum": 1},
        "request_timeout": {"type": "number", "exclusiveMinimum": 0},
        "batch_size": {"type": "integer", "minimum": 1},
        "max_upload_bytes": {"type": "integer", "minimum": 1},
        "dry_run": {"type": "boolean"},
        "show_progress": {"type": "boolean"},
        "logging": {
            "type": "object",
            "properties": {
                "log_level": {"type": "string"},
                "log_file_path": {"type": ["string", "null"]},
                "log_to_console": {"type": "boolean"}
            }
        },
        "server": {
            "type": "object",
            "properties": {
                "host": {"type": "string"},
                "port": {"type": "integer", "minimum": 1, "maximum": 65535}
            }
        }
    }
}


@dataclass
class AppConfig:
    """Application configuration dataclass."""
    project_root: str

    # Language configuration
    language_codes: Dict[str, str]

    # Translation service
    model_name: str
    openai_api_key: Optional[str]
    max_concurrent_api_calls: int
    rate_limit: int
    rate_period: float
    max_attempts: int
    request_timeout: float
    dry_run: bool

    # Request processing
    batch_size: int
    max_upload_bytes: int
    show_progress: bool

    # Server
    server_host: str
    server_port: int


def _compute_project_root() -> str:
    """Compute the project root directory."""
    script_real_path = os.path.realpath(__file__)
    script_dir = os.path.dirname(script_real_path)
    return os.path.abspath(os.path.join(script_dir, os.pardir))


def _load_dotenv_files(project_root: str) -> None:
    """Load .env files from project root or docker directory."""
    dotenv_path_project_root = os.path.join(project_root, '.env')
    dotenv_path_docker_dir = os.path.join(project_root, 'docker', '.env')

    if os.path.exists(dotenv_path_project_root):
        load_dotenv(dotenv_path_project_root)
    elif os.path.exists(dotenv_path_docker_dir):
        load_dotenv(dotenv_path_docker_dir)


def _load_yaml_config(project_root: str) -> Dict[str, Any]:
    """Load and validate the YAML configuration file, falling back to defaults on any problem."""
    default_config_path = os.path.join(project_root, 'config.yaml')
    config_file = os.environ.get('TRANSLATOR_CONFIG_FILE', default_config_path)

    if not os.path.isabs(config_file):
        config_file = os.path.abspath(config_file)

    config = {}
    try:
        if not os.path.exists(config_file):
            print(f"Warning: Configuration file '{config_file}' not found. Using default configuration.",
                  file=sys.stderr)
            print(f"Tip: Create a config.yaml file in '{project_root}' or set TRANSLATOR_CONFIG_FILE environment variable.",
                  file=sys.stderr)
            return config

        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded_config = yaml.safe_load(config_file_stream)
            if loaded_config is None:
                print(f"Warning: Configuration file '{config_file}' is empty. Using default configuration.",
                      file=sys.stderr)
            elif isinstance(loaded_config, dict):
                jsonschema.validate(instance=loaded_config, schema=CONFIG_SCHEMA)
                config = loaded_config
                print(f"Successfully loaded configuration from: {config_file}", file=sys.stderr)
            else:
                print(f"Error: Configuration file '{config_file}' must contain a YAML dictionary. Using defaults.",
                      file=sys.stderr)

    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file '{config_file}': {e}", file=sys.stderr)
        print("Please check your YAML syntax. Using default configuration.", file=sys.stderr)
    except jsonschema.ValidationError as e:
        print(f"Error: Configuration file '{config_file}' is invalid: {e.message}", file=sys.stderr)
        print("Using default configuration.", file=sys.stderr)
    except (OSError, IOError) as e:
        print(f"Error: Could not read configuration file '{config_file}': {e}", file=sys.stderr)
        print("Using default configuration.", file=sys.stderr)

    return config


def _setup_logger_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Set up logger based on configuration."""
    log_config = config.get('logging', {})
    log_level_str = log_config.get('log_level', 'INFO').upper()
    log_file_path = log_config.get('log_file_path', 'logs/translation_log.log')
    log_to_console = log_config.get('log_to_console', True)
    return setup_logger(log_level_str, log_file_path, log_to_console)


def _build_language_codes(locales_list: List[Dict[str, str]]) -> Dict[str, str]:
    """Build the code-to-name mapping of supported languages."""
    language_codes: Dict[str, str] = {}
    for locale in locales_list:
        code = locale.get('code')
        name = locale.get('name')
        if code and name:
            language_codes[code.lower()] = name
    return language_codes


def _read_api_key(dry_run: bool, logger: logging.Logger) -> Optional[str]:
    """Read the OpenAI API key, exiting if it is required but missing."""
    if dry_run:
        logger.info("Running in dry-run mode, values will be returned untranslated")
        return None

    api_key_from_env = os.environ.get('OPENAI_API_KEY')
    if not api_key_from_env:
        logger.critical("CRITICAL: OPENAI_API_KEY environment variable not found.")
        logger.critical("Please set OPENAI_API_KEY or enable dry_run mode in configuration.")
        sys.exit(1)

    if not api_key_from_env.startswith('sk-'):
        logger.warning("Warning: OPENAI_API_KEY does not start with 'sk-'. This may be invalid.")
    return api_key_from_env


def load_app_config() -> AppConfig:
    """
    Load application configuration from YAML file and environment variables.

    Returns:
        AppConfig: The loaded application configuration.
    """
    project_root = _compute_project_root()
    _load_dotenv_files(project_root)
    config = _load_yaml_config(project_root)
    logger = _setup_logger_from_config(config)

    language_codes = _build_language_codes(config.get('supported_locales', DEFAULT_SUPPORTED_LOCALES))
    if not language_codes:
        raise ConfigurationError("No supported languages are configured.")

    dry_run = config.get('dry_run', False)
    if os.environ.get('TRANSLATOR_DRY_RUN', '').lower() in ('1', 'true', 'yes'):
        dry_run = True

    model_name = os.environ.get('TRANSLATION_MODEL_NAME', config.get('model_name', 'gpt-4o-mini'))
    try:
        batch_size = int(os.environ.get('TRANSLATION_BATCH_SIZE', config.get('batch_size', 100)))
    except ValueError as e:
        raise ConfigurationError(f"Invalid TRANSLATION_BATCH_SIZE: {e}") from e
    if batch_size < 1:
        raise ConfigurationError("Batch size must be at least 1.")

    server_config = config.get('server', {})

    app_config = AppConfig(
        project_root=project_root,
        language_codes=language_codes,
        model_name=model_name,
        openai_api_key=_read_api_key(dry_run, logger),
        max_concurrent_api_calls=config.get('max_concurrent_api_calls', 100),
        rate_limit=config.get('rate_limit', 600),
        rate_period=config.get('rate_period', 60),
        max_attempts=config.get('max_attempts', 1),
        request_timeout=config.get('request_timeout', 60.0),
        dry_run=dry_run,
        batch_size=batch_size,
        max_upload_bytes=config.get('max_upload_bytes', DEFAULT_MAX_UPLOAD_BYTES),
        show_progress=config.get('show_progress', False),
        server_host=server_config.get('host', '127.0.0.1'),
        server_port=int(os.environ.get('PORT', server_config.get('port', 8787)))
    )
    logger.info(
        "Configuration loaded: model '%s', %d supported languages, batch size %d",
        app_config.model_name, len(app_config.language_codes), app_config.batch_size
    )
    return app_config
