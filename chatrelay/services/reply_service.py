from dataclasses import dataclass
from typing import Optional

from chatrelay.config import Settings, settings
from chatrelay.logging_config import get_logger
from chatrelay.services.errors import UpstreamAIFailure
from chatrelay.services.llm import AnthropicProvider, LLMProvider, OpenAIProvider

logger = get_logger("reply_service")

GREETING_RESPONSE = "¡Hola! 👋 Bienvenido. ¿En qué puedo ayudarte hoy?"
OFFERINGS_RESPONSE = (
    "Ofrecemos asesoría personalizada, planes mensuales y soporte por WhatsApp. "
    "¿Te gustaría conocer los detalles de alguno?"
)
HOURS_RESPONSE = "Nuestro horario es de lunes a viernes de 9:00 a 18:00 y sábados de 9:00 a 14:00."
LOCATION_RESPONSE = "Estamos en el centro de la ciudad. Escríbenos y te compartimos la ubicación exacta."
CONTACT_RESPONSE = "Puedes contactarnos por este mismo chat o escribirnos a contacto@example.com."
REGISTRATION_RESPONSE = (
    "Para registrarte solo envíanos tu nombre completo y correo electrónico, "
    "y te ayudamos con el resto."
)
DEFAULT_RESPONSE_TEMPLATE = (
    'Recibí tu mensaje: "{text}". Un miembro de nuestro equipo te responderá pronto. '
    "También puedes preguntarme por servicios, horarios, ubicación, contacto o registro."
)

# Order matters: first matching group wins.
KEYWORD_GROUPS: tuple[tuple[str, tuple[str, ...], str], ...] = (
    ("greeting", ("hola", "buenos días", "buenos dias", "buenas tardes", "buenas noches", "hello"), GREETING_RESPONSE),
    ("offerings", ("servicio", "producto", "ofrecen", "precio", "costo", "plan"), OFFERINGS_RESPONSE),
    ("hours", ("horario", "hora", "abierto", "abren", "cierran"), HOURS_RESPONSE),
    ("location", ("ubicación", "ubicacion", "dirección", "direccion", "dónde", "donde"), LOCATION_RESPONSE),
    ("contact", ("contacto", "teléfono", "telefono", "correo", "email", "llamar"), CONTACT_RESPONSE),
    ("registration", ("registro", "registrar", "inscribir", "inscripción", "inscripcion", "cuenta"), REGISTRATION_RESPONSE),
)


@dataclass
class Reply:
    text: str
    source: str  # ai, rules
    group: Optional[str] = None


def match_keyword_group(text: str) -> Optional[str]:
    """Return the name of the first keyword group found in text."""
    normalized = (text or "").lower()
    for name, keywords, _ in KEYWORD_GROUPS:
        if any(keyword in normalized for keyword in keywords):
            return name
    return None


def rule_based_reply(text: str) -> Reply:
    group = match_keyword_group(text)
    for name, _, response in KEYWORD_GROUPS:
        if name == group:
            return Reply(text=response, source="rules", group=name)
    return Reply(text=DEFAULT_RESPONSE_TEMPLATE.format(text=text), source="rules")


def build_llm_provider(config: Settings) -> Optional[LLMProvider]:
    """Create the configured AI provider, or None when no credential is set."""
    provider = config.ai_provider.strip().lower()
    if provider == "anthropic" and config.anthropic_api_key:
        return AnthropicProvider(
            api_key=config.anthropic_api_key,
            default_model=config.anthropic_model,
            api_version=config.anthropic_version,
        )
    if provider == "openai" and config.openai_api_key:
        return OpenAIProvider(api_key=config.openai_api_key, default_model=config.openai_model)
    return None


class ReplyResolver:
    """Maps an inbound text to a reply, AI first, rules as fallback."""

    def __init__(
        self,
        provider: Optional[LLMProvider] = None,
        max_tokens: int = 1024,
        timeout_seconds: float = 60.0,
    ):
        self.provider = provider
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds

    def resolve(self, message_text: str) -> Reply:
        if self.provider is None:
            return rule_based_reply(message_text)

        try:
            response = self.provider.generate(
                [{"role": "user", "content": message_text}],
                max_tokens=self.max_tokens,
                timeout_seconds=self.timeout_seconds,
            )
            return Reply(text=response.content, source="ai")
        except UpstreamAIFailure as e:
            logger.warning(
                "AI backend failed, using rule-based reply",
                extra={"context": {"provider": self.provider.name, "error": e.message}},
            )
        except Exception as e:
            logger.error(
                "Unexpected AI provider error, using rule-based reply",
                extra={"context": {"provider": self.provider.name, "error": str(e)}},
                exc_info=True,
            )
        return rule_based_reply(message_text)


_resolver: Optional[ReplyResolver] = None


def get_reply_resolver() -> ReplyResolver:
    """Get or create the process-wide resolver."""
    global _resolver
    if _resolver is None:
        _resolver = ReplyResolver(
            provider=build_llm_provider(settings),
            max_tokens=settings.ai_max_tokens,
            timeout_seconds=settings.ai_timeout_seconds,
        )
    return _resolver
