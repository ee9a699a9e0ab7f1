"""HTTP entry point: upload a .properties file and receive its translation."""
import asyncio
import logging
from typing import Callable, Optional

from flask import Flask, Response, request

from properties_translator.app_config import AppConfig, load_app_config
from properties_translator.exceptions import TranslationServiceError
from properties_translator.translation_service import create_translator
from properties_translator.translator import TranslationResult, translate_document

logger = logging.getLogger(__name__)

FAILURES_HEADER = "X-Translation-Failures"

# Room for the multipart framing around the uploaded file.
MULTIPART_OVERHEAD_BYTES = 64 * 1024


def normalize_language(language: str) -> str:
    """Lower-case a language tag and keep only its primary subtag (``pt-BR`` -> ``pt``)."""
    return language.strip().lower().split("-")[0]


def output_filename(language_code: str) -> str:
    return f"messages_{language_code}.properties"


def _text_response(body: str, status: int) -> Response:
    return Response(body, status=status, mimetype="text/plain")


def _too_large_message(max_upload_bytes: int) -> str:
    return f"File too large. Maximum size is {max_upload_bytes // (1024 * 1024)}MB."


async def _run_translation(
        text: str,
        language_code: str,
        translator_factory: Callable,
        config: AppConfig
) -> TranslationResult:
    async with translator_factory() as translator:
        return await translate_document(
            text,
            language_code,
            translator.translate,
            batch_size=config.batch_size,
            show_progress=config.show_progress
        )


def create_app(config: AppConfig, translator_factory: Optional[Callable] = None) -> Flask:
    """
    Create the Flask application.

    Args:
        config: The application configuration.
        translator_factory: Returns an async context manager exposing
            ``translate(text, target_language)``. A new translator is created for
            every request. Defaults to one built from ``config``.
    """
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.max_upload_bytes + MULTIPART_OVERHEAD_BYTES

    if translator_factory is None:
        def translator_factory():
            return create_translator(config)

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return _text_response("Invalid request method. Use POST.", 405)

    @app.errorhandler(413)
    def request_too_large(_error):
        return _text_response(_too_large_message(config.max_upload_bytes), 413)

    @app.post("/")
    def translate_upload():
        upload = request.files.get("file")
        language = request.form.get("language")
        if upload is None or not language:
            logger.warning("Rejected request: missing file or language.")
            return _text_response("File and language parameters are required.", 400)

        data = upload.read(config.max_upload_bytes + 1)
        if len(data) > config.max_upload_bytes:
            logger.warning("Rejected request: file '%s' exceeds %d bytes.", upload.filename, config.max_upload_bytes)
            return _text_response(_too_large_message(config.max_upload_bytes), 413)

        language_code = normalize_language(language)
        if language_code not in config.language_codes:
            logger.warning("Rejected request: unsupported language code '%s'.", language)
            supported = ", ".join(sorted(config.language_codes))
            return _text_response(
                f"Unsupported language code: {language}. Supported languages: {supported}",
                400
            )

        text = data.decode("utf-8", errors="replace")
        logger.info(
            "Translating '%s' (%d bytes) into '%s'.",
            upload.filename, len(data), language_code
        )

        try:
            result = asyncio.run(_run_translation(text, language_code, translator_factory, config))
        except TranslationServiceError as e:
            logger.error("Translation service unavailable: %s", e)
            return _text_response(f"Translation service error: {e}", 500)

        response = Response(result.text, status=200, mimetype="text/plain")
        response.headers["Content-Disposition"] = f'attachment; filename="{output_filename(language_code)}"'
        if result.failed_entries > 0:
            response.headers[FAILURES_HEADER] = str(result.failed_entries)
        logger.info(
            "Finished '%s': %d translated, %d failed, %d skipped.",
            language_code, result.translated_entries, result.failed_entries, result.skipped_entries
        )
        return response

    return app


def main():
    """Run the development server."""
    config = load_app_config()
    app = create_app(config)
    app.run(host=config.server_host, port=config.server_port)


if __name__ == "__main__":
    main()
