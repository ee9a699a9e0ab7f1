import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
from openai import APIConnectionError, RateLimitError

from properties_translator.exceptions import TranslationServiceError
from properties_translator.translation_service import (
    DryRunTranslator,
    OpenAITranslator,
    clean_translated_text,
    completion_token_budget,
    count_tokens,
    create_translator
)
from properties_translator.translator import SEGMENT_DELIMITER
from tests.conftest import make_app_config

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def completion(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


def rate_limit_error(retry_after="0"):
    response = httpx.Response(429, headers={"Retry-After": retry_after}, request=REQUEST)
    return RateLimitError("Rate limit reached", response=response, body=None)


def make_translator(create, **kwargs):
    client = MagicMock()
    client.chat.completions.create = create
    client.close = AsyncMock()
    return OpenAITranslator(
        client=client,
        model_name="gpt-4o-mini",
        language_codes={"fr": "French", "de": "German"},
        **kwargs
    )


class TestHelperFunctions(unittest.TestCase):

    def test_clean_translated_text_quotes_and_brackets(self):
        self.assertEqual(clean_translated_text('"Hallo"', 'Hello'), 'Hallo')
        self.assertEqual(clean_translated_text('[Hallo]', 'Hello'), 'Hallo')
        # If original had quotes they should be preserved
        self.assertEqual(clean_translated_text('"Hallo"', '"Hello"'), '"Hallo"')

    def test_clean_translated_text_restores_outer_whitespace(self):
        self.assertEqual(clean_translated_text('Bonjour\n', 'Hello'), 'Bonjour')
        self.assertEqual(clean_translated_text('Bonjour', ' Hello  '), ' Bonjour  ')

    def test_clean_translated_text_keeps_inner_delimiters(self):
        translated = f'Bonjour {SEGMENT_DELIMITER}Monde'
        self.assertEqual(clean_translated_text(translated, f'Hello {SEGMENT_DELIMITER}World'), translated)

    def test_count_tokens_fallback(self):
        # Force encoding_for_model to raise to trigger fallback
        with patch('properties_translator.translation_service.tiktoken.encoding_for_model', side_effect=Exception()):
            fake_enc = MagicMock()
            fake_enc.encode.side_effect = lambda s: list(s.split())
            with patch('properties_translator.translation_service.tiktoken.get_encoding', return_value=fake_enc):
                count = count_tokens('one two three')
        self.assertEqual(count, 3)

    def test_count_tokens_last_resort(self):
        with patch('properties_translator.translation_service.tiktoken.encoding_for_model', side_effect=Exception()), \
                patch('properties_translator.translation_service.tiktoken.get_encoding', side_effect=Exception()):
            self.assertEqual(count_tokens('one two three four'), 4)

    def test_completion_token_budget_grows_with_input(self):
        with patch('properties_translator.translation_service.count_tokens', side_effect=[1, 50]):
            small = completion_token_budget('Hi', 'gpt-4o-mini')
            large = completion_token_budget('A much longer text', 'gpt-4o-mini')
        self.assertEqual(small, 68)
        self.assertEqual(large, 264)


class TestOpenAITranslator(unittest.IsolatedAsyncioTestCase):

    async def test_translate_returns_cleaned_content(self):
        create = AsyncMock(return_value=completion('"Bonjour"\n'))
        translator = make_translator(create)

        result = await translator.translate('Hello', 'fr')

        self.assertEqual(result, 'Bonjour')
        kwargs = create.await_args.kwargs
        self.assertEqual(kwargs['model'], 'gpt-4o-mini')
        self.assertIn('French', kwargs['messages'][0]['content'])
        self.assertIn(SEGMENT_DELIMITER, kwargs['messages'][0]['content'])
        self.assertEqual(kwargs['messages'][1]['content'], 'Hello')
        self.assertGreater(kwargs['max_tokens'], 0)

    async def test_unknown_language_code_is_used_as_is(self):
        create = AsyncMock(return_value=completion('Hej'))
        translator = make_translator(create)

        await translator.translate('Hello', 'sv')

        self.assertIn('into sv', create.await_args.kwargs['messages'][0]['content'])

    async def test_api_error_without_retries(self):
        create = AsyncMock(side_effect=APIConnectionError(request=REQUEST))
        translator = make_translator(create)

        with self.assertRaises(TranslationServiceError) as ctx:
            await translator.translate('Hello', 'fr')

        self.assertEqual(ctx.exception.code, 'api_error')
        self.assertEqual(create.await_count, 1)

    async def test_retries_when_configured(self):
        create = AsyncMock(side_effect=[rate_limit_error(), completion('Hallo')])
        translator = make_translator(create, max_attempts=3)

        with patch('properties_translator.translation_service.asyncio.sleep', new_callable=AsyncMock) as mock_sleep:
            result = await translator.translate('Hello', 'de')

        self.assertEqual(result, 'Hallo')
        self.assertEqual(create.await_count, 2)
        mock_sleep.assert_awaited_once_with(0.0)

    async def test_gives_up_after_max_attempts(self):
        create = AsyncMock(side_effect=rate_limit_error())
        translator = make_translator(create, max_attempts=2)

        with patch('properties_translator.translation_service.asyncio.sleep', new_callable=AsyncMock):
            with self.assertRaises(TranslationServiceError) as ctx:
                await translator.translate('Hello', 'de')

        self.assertEqual(create.await_count, 2)
        self.assertEqual(ctx.exception.details, {'attempts': 2})

    async def test_every_attempt_goes_through_the_rate_limiter(self):
        create = AsyncMock(side_effect=[rate_limit_error(), rate_limit_error(), completion('Hallo')])
        translator = make_translator(create, max_attempts=3)
        translator.rate_limiter = MagicMock()
        translator.rate_limiter.__aexit__.return_value = False

        with patch('properties_translator.translation_service.asyncio.sleep', new_callable=AsyncMock):
            await translator.translate('Hello', 'de')

        self.assertEqual(create.await_count, 3)
        self.assertEqual(translator.rate_limiter.__aenter__.await_count, 3)

    async def test_empty_response_is_an_error(self):
        create = AsyncMock(return_value=completion(None))
        translator = make_translator(create)

        with self.assertRaises(TranslationServiceError) as ctx:
            await translator.translate('Hello', 'fr')
        self.assertEqual(ctx.exception.code, 'empty_response')

    async def test_context_manager_closes_client(self):
        translator = make_translator(AsyncMock())
        async with translator:
            pass
        translator.client.close.assert_awaited_once()


class TestDryRunTranslator(unittest.IsolatedAsyncioTestCase):

    async def test_returns_text_unchanged(self):
        async with DryRunTranslator() as translator:
            self.assertEqual(await translator.translate('Hello __PH_0__', 'fr'), 'Hello __PH_0__')


class TestCreateTranslator(unittest.TestCase):

    def test_dry_run(self):
        self.assertIsInstance(create_translator(make_app_config(dry_run=True)), DryRunTranslator)

    def test_openai(self):
        config = make_app_config(dry_run=False, openai_api_key='sk-test', max_attempts=2)
        with patch('properties_translator.translation_service.AsyncOpenAI') as mock_client_class:
            translator = create_translator(config)

        self.assertIsInstance(translator, OpenAITranslator)
        mock_client_class.assert_called_once_with(api_key='sk-test')
        self.assertEqual(translator.max_attempts, 2)
        self.assertEqual(translator.model_name, config.model_name)


if __name__ == '__main__':
    unittest.main()
