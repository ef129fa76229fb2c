from unittest.mock import Mock

from chatrelay.config import Settings
from chatrelay.services.errors import UpstreamAIFailure
from chatrelay.services.llm import AnthropicProvider, LLMResponse, OpenAIProvider
from chatrelay.services.reply_service import (
    CONTACT_RESPONSE,
    GREETING_RESPONSE,
    HOURS_RESPONSE,
    LOCATION_RESPONSE,
    OFFERINGS_RESPONSE,
    REGISTRATION_RESPONSE,
    ReplyResolver,
    build_llm_provider,
    match_keyword_group,
    rule_based_reply,
)


class TestRuleBasedReply:
    def test_greeting(self):
        assert rule_based_reply("Hola!").text == GREETING_RESPONSE

    def test_case_insensitive(self):
        assert rule_based_reply("HOLA, BUENOS DÍAS").text == GREETING_RESPONSE

    def test_each_group(self):
        assert rule_based_reply("¿Qué servicios tienen?").text == OFFERINGS_RESPONSE
        assert rule_based_reply("¿Cuál es su horario?").text == HOURS_RESPONSE
        assert rule_based_reply("¿Dónde están?").text == LOCATION_RESPONSE
        assert rule_based_reply("Pásame su teléfono").text == CONTACT_RESPONSE
        assert rule_based_reply("Quiero hacer mi registro").text == REGISTRATION_RESPONSE

    def test_greeting_wins_even_when_it_appears_last(self):
        reply = rule_based_reply("Precio, horario y ubicación por favor... ah, y hola")
        assert reply.text == GREETING_RESPONSE
        assert reply.group == "greeting"

    def test_earlier_group_wins(self):
        assert match_keyword_group("Registro y horario") == "hours"

    def test_default_echoes_text(self):
        reply = rule_based_reply("xyz 123")
        assert reply.group is None
        assert "xyz 123" in reply.text
        assert reply.source == "rules"

    def test_empty_text(self):
        assert match_keyword_group("") is None


class TestReplyResolver:
    def test_without_provider_uses_rules(self):
        reply = ReplyResolver(provider=None).resolve("hola")
        assert reply.source == "rules"
        assert reply.text == GREETING_RESPONSE

    def test_uses_ai_reply(self):
        provider = Mock()
        provider.generate.return_value = LLMResponse(content="Respuesta IA", model="m")

        reply = ReplyResolver(provider=provider, max_tokens=256, timeout_seconds=5).resolve("hola")

        assert reply.text == "Respuesta IA"
        assert reply.source == "ai"
        messages = provider.generate.call_args[0][0]
        assert messages == [{"role": "user", "content": "hola"}]
        assert provider.generate.call_args[1]["max_tokens"] == 256
        assert provider.generate.call_args[1]["timeout_seconds"] == 5

    def test_ai_failure_falls_back(self):
        provider = Mock()
        provider.name = "anthropic"
        provider.generate.side_effect = UpstreamAIFailure("Anthropic API error: 401")

        reply = ReplyResolver(provider=provider).resolve("hola")

        assert reply.source == "rules"
        assert reply.text == GREETING_RESPONSE

    def test_unexpected_error_falls_back(self):
        provider = Mock()
        provider.name = "anthropic"
        provider.generate.side_effect = RuntimeError("boom")

        reply = ReplyResolver(provider=provider).resolve("horario")

        assert reply.text == HOURS_RESPONSE


class TestBuildLLMProvider:
    def test_no_credentials(self):
        assert build_llm_provider(Settings(_env_file=None, anthropic_api_key=None, openai_api_key=None)) is None

    def test_anthropic(self):
        provider = build_llm_provider(Settings(_env_file=None, ai_provider="anthropic", anthropic_api_key="k"))
        assert isinstance(provider, AnthropicProvider)

    def test_openai(self):
        provider = build_llm_provider(Settings(_env_file=None, ai_provider="OpenAI", openai_api_key="k"))
        assert isinstance(provider, OpenAIProvider)

    def test_provider_without_its_key(self):
        assert build_llm_provider(Settings(_env_file=None, ai_provider="openai", anthropic_api_key="k", openai_api_key=None)) is None
