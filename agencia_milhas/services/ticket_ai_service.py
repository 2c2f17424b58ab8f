# ==============================================================================
# LEITURA DE BILHETES COM IA (Anthropic)
# ==============================================================================
# Envia o texto do bilhete ao modelo e devolve sempre o mesmo conjunto de
# campos (TICKET_FIELDS), com None para o que não foi encontrado.
#
#   request_fields -> usado pelo endpoint /api/parse-ticket (erros viram 500)
#   parse_with_ai  -> uso interno: qualquer falha devolve {}
# ==============================================================================

import json
import logging
from typing import Any, Dict, Optional

import anthropic

from agencia_milhas.models import TICKET_FIELDS

logger = logging.getLogger(__name__)

MAX_TEXT_CHARS = 8000
MAX_TOKENS = 1000

SYSTEM_PROMPT = (
    "Você é um assistente especializado em ler bilhetes de passagem aérea (e-tickets) "
    "em português ou inglês e extrair campos estruturados. Sempre responda APENAS com "
    "um JSON válido, sem texto extra."
)

USER_PROMPT = """Extraia os seguintes campos, se existirem, do texto abaixo do bilhete de passagem:

- pnr: código localizador (6 caracteres, letras e números)
- ticketNumber: número do bilhete, geralmente no formato 0000000000000 ou 000-0000000000
- passengerName: nome completo do passageiro, formato "SOBRENOME/NOME" ou similar
- cpf: CPF do passageiro (apenas números, 11 dígitos)
- route: rota principal no formato ORIGEM-DESTINO, ex: FOR-GRU ou GRU-MCO
- departureDate: data da partida no formato YYYY-MM-DD
- airline: nome da companhia aérea (ex: LATAM, GOL, AZUL, TAP)
- flightNumber: número do voo (ex: LA1234, G31234)

Regras importantes:
- Se algum campo não existir com clareza, devolva null para ele.
- Não invente dados. Só preencha se estiver claro no texto.
- A data pode aparecer em formatos diferentes (DD/MM/YYYY, DD-MM-YYYY, etc.). Converta sempre para YYYY-MM-DD.
- Se houver mais de um voo, considere o primeiro voo da viagem como referência.

Responda APENAS com um JSON com esta estrutura:
{{
  "pnr": string | null,
  "ticketNumber": string | null,
  "passengerName": string | null,
  "cpf": string | null,
  "route": string | null,
  "departureDate": string | null,
  "airline": string | null,
  "flightNumber": string | null
}}

Texto do bilhete:
\"\"\"{text}\"\"\""""


class TicketAIError(Exception):
    """Falha ao consultar o modelo ou ao interpretar a resposta."""


def strip_code_fences(text: str) -> str:
    """Remove ```json ... ``` quando o modelo responde em bloco de código."""
    text = (text or '').strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ''
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
    return text


class TicketAIService:
    """
    Cliente do modelo de linguagem para leitura de bilhetes.

    O client pode ser injetado (testes); sem ele, um anthropic.Anthropic é
    criado sob demanda com a chave configurada.
    """

    def __init__(self, api_key: Optional[str], model: str, client: Any = None):
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def request_fields(self, text: str) -> Dict[str, Optional[str]]:
        """
        Consulta o modelo e devolve os 8 campos (None quando ausentes).

        Raises:
            TicketAIError: chave ausente, erro da API ou JSON inválido
        """
        if not self.configured:
            raise TicketAIError('ANTHROPIC_API_KEY não configurada.')

        trimmed = (text or '')[:MAX_TEXT_CHARS]
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": USER_PROMPT.format(text=trimmed)}],
            )
            content = message.content[0].text
        except anthropic.APIError as e:
            logger.error("[IA] Erro ao chamar o modelo: %s", e)
            raise TicketAIError('Erro ao chamar o modelo de IA') from e
        except (IndexError, AttributeError) as e:
            raise TicketAIError('Resposta vazia do modelo de IA') from e

        try:
            parsed = json.loads(strip_code_fences(content))
        except json.JSONDecodeError as e:
            logger.error("[IA] JSON inválido retornado pelo modelo: %s", content[:200])
            raise TicketAIError('O modelo não retornou JSON válido') from e
        if not isinstance(parsed, dict):
            raise TicketAIError('O modelo não retornou JSON válido')

        return {key: parsed.get(key) or None for key in TICKET_FIELDS}

    def parse_with_ai(self, text: str) -> Dict[str, str]:
        """
        Versão tolerante: devolve só os campos encontrados, ou {} se não
        houver chave, texto ou se a chamada falhar.
        """
        if not self.configured:
            logger.warning("[IA] Chave da API não configurada. Pulando leitura com IA.")
            return {}
        if not text or not text.strip():
            return {}
        try:
            fields = self.request_fields(text)
        except Exception as e:
            logger.warning("[IA] Leitura com IA falhou: %s", e)
            return {}
        return {k: v for k, v in fields.items() if v is not None}
