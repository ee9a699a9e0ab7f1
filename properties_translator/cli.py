"""Command line uploader: send a .properties file to the translation service once per language."""
import argparse
import logging
import os
import sys
from typing import List, Optional

import httpx

from properties_translator.logging_config import setup_logger

logger = logging.getLogger("properties_translator.cli")

DEFAULT_SERVICE_URL = "http://127.0.0.1:8787/"
DEFAULT_LANGUAGES = ["fr", "es", "de"]
DEFAULT_TIMEOUT = 600.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="translate-messages",
        description="Upload a .properties file and download one translation per target language.",
    )
    parser.add_argument(
        "-f",
        "--file",
        default="messages.properties",
        help="The file to upload (default: messages.properties).",
    )
    parser.add_argument(
        "-l",
        "--languages",
        default=",".join(DEFAULT_LANGUAGES),
        help="Comma-separated list of target languages (default: fr,es,de).",
    )
    parser.add_argument(
        "-u",
        "--url",
        default=os.environ.get("TRANSLATOR_SERVICE_URL", DEFAULT_SERVICE_URL),
        help="URL of the translation service (default: $TRANSLATOR_SERVICE_URL or %(default)s).",
    )
    parser.add_argument(
        "-o",
        "--output-dir",
        default=".",
        help="Directory for the translated files (default: current directory).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Seconds to wait for each translation (default: %(default)s).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    return parser


def parse_languages(value: str) -> List[str]:
    return [language.strip() for language in value.split(",") if language.strip()]


def translate_file(file_path: str, language: str, url: str, output_dir: str, timeout: float) -> bool:
    """
    Upload ``file_path`` for one language and save the response body.

    Returns:
        bool: True if the translated file was written.
    """
    logger.info("Translating to %s...", language)
    try:
        with open(file_path, "rb") as upload:
            response = httpx.post(
                url,
                files={"file": (os.path.basename(file_path), upload, "text/plain")},
                data={"language": language},
                timeout=timeout,
            )
    except httpx.HTTPError as exc:
        logger.error("Failed to translate to %s: %s", language, exc)
        return False
    except OSError as exc:
        logger.error("Could not read %s: %s", file_path, exc)
        return False

    if not response.is_success:
        logger.error(
            "Failed to translate to %s. HTTP Status: %d %s",
            language, response.status_code, response.text.strip()
        )
        return False

    output_path = os.path.join(output_dir, f"messages_{language}.properties")
    try:
        with open(output_path, "wb") as output:
            output.write(response.content)
    except OSError as exc:
        logger.error("Could not write %s: %s", output_path, exc)
        return False
    logger.info("Translated file saved as %s", output_path)

    failures = response.headers.get("X-Translation-Failures")
    if failures:
        logger.warning("%s entries could not be translated to %s and were left unchanged.", failures, language)
    return True


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger("DEBUG" if args.verbose else "INFO", None, True)

    if not os.path.isfile(args.file):
        logger.error("File %s does not exist.", args.file)
        return 1

    languages = parse_languages(args.languages)
    if not languages:
        logger.error("No target languages given.")
        return 1

    os.makedirs(args.output_dir, exist_ok=True)
    failed = [
        language for language in languages
        if not translate_file(args.file, language, args.url, args.output_dir, args.timeout)
    ]
    if failed:
        logger.error("Translation failed for: %s", ", ".join(failed))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
