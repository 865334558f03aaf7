"""Prompts for glossary generation and the voice assistant's dialogue script."""

from __future__ import annotations

from desbuguei.schemas.term import CATEGORIES, MAX_RELATED_TERMS

DEFINITION_SYSTEM = (
    "You are a technical glossary for business executives. "
    "Write every explanation in Brazilian Portuguese, in plain, business-focused language."
)


def build_definition_prompt(term: str) -> str:
    return f"""Define the term "{term}".

Requirements:
1. 'term': The short display name of the term.
2. 'fullTerm': The full English name or expansion.
3. 'translation': Translate the essence to Portuguese.
4. 'definition': A clear, business-focused definition in Portuguese.
5. 'phonetic': Portuguese pronunciation hint.
6. 'slang': Common slang (or null).
7. 'examples': 2 business contexts.
8. 'analogies': 2 simple analogies.
9. 'practicalUsage': Realistic sentence in Portuguese used by developers.
10. 'relatedTerms': Up to {MAX_RELATED_TERMS} related keywords.
11. 'category': Pick one: {", ".join(CATEGORIES)}.
"""


_TITLED_ITEM = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "description": {"type": "STRING"},
    },
}

TERM_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "STRING"},
        "term": {"type": "STRING"},
        "fullTerm": {"type": "STRING"},
        "category": {"type": "STRING", "enum": CATEGORIES},
        "definition": {"type": "STRING"},
        "phonetic": {"type": "STRING"},
        "slang": {"type": "STRING", "nullable": True},
        "translation": {"type": "STRING"},
        "examples": {"type": "ARRAY", "items": _TITLED_ITEM},
        "analogies": {"type": "ARRAY", "items": _TITLED_ITEM},
        "practicalUsage": {
            "type": "OBJECT",
            "properties": {
                "title": {"type": "STRING"},
                "content": {"type": "STRING"},
            },
        },
        "relatedTerms": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["term", "definition"],
}


# ── Voice assistant ──────────────────────────────────────────────────────────

GREETING = "Oi, o que quer saber?"
CODE_REQUEST_REPLY = (
    "Me desculpe, mas sou especialista em programação e algumas coisa de tecnologia. "
    "Essa duvida pode perguntar ao ChatGPT."
)
OFF_TOPIC_REPLY = (
    "Me desculpe, mas sou especialista em programação e algumas coisa de tecnologia. "
    "Essa duvida pode perguntar ao Google."
)
CONFIRMATION_QUESTION = "É isso que quer saber? Posso responder?"
CLARIFICATION_REQUEST = "Ok, refaça a pergunta ou explique melhor?"

SEARCH_TERM_TOOL = {
    "name": "search_term",
    "description": "Navigate to the definition of a technical term.",
    "parameters": {
        "type": "OBJECT",
        "properties": {
            "term": {
                "type": "STRING",
                "description": "The technical term to search for (e.g., Kubernetes, API, React).",
            },
        },
        "required": ["term"],
    },
}


def build_voice_instruction(persona: dict) -> str:
    """Wrap a persona's speaking style in the fixed navigation dialogue script."""
    return f"""VOCÊ É O ASSISTENTE DE NAVEGAÇÃO DO APP 'DESBUGUEI'.
SEU NOME É: {persona['name']}.
SUA PERSONALIDADE BASE: {persona['system_prompt']}

ATENÇÃO: VOCÊ DEVE SEGUIR RIGOROSAMENTE O FLUXO DE ESTADOS ABAIXO. NÃO SAIA DO ROTEIRO.

--- FLUXO DE ESTADOS ---

ESTADO 1: INÍCIO (Ao conectar)
- Ação: Assim que conectar, diga IMEDIATAMENTE e EXATAMENTE: "{GREETING}"
- Aguarde a fala do usuário.

ESTADO 2: ANÁLISE DA PERGUNTA DO USUÁRIO
- O usuário vai falar algo. Analise o conteúdo:

CASO A (Geração de Código/Prompts): O usuário pede para criar códigos, scripts, prompts ou comandos.
   -> Resposta OBRIGATÓRIA: "{CODE_REQUEST_REPLY}"
   -> Fim da interação (aguarde nova pergunta).

CASO B (Assunto Aleatório): O usuário fala sobre esportes, receitas, política, ou qualquer coisa que NÃO seja tecnologia/programação.
   -> Resposta OBRIGATÓRIA: "{OFF_TOPIC_REPLY}"
   -> Fim da interação (aguarde nova pergunta).

CASO C (Dúvida Técnica Válida): O usuário pergunta "O que é React?", "Defina API", ou apenas diz um termo técnico.
   -> Ação: Identifique o termo.
   -> Resposta OBRIGATÓRIA: "{CONFIRMATION_QUESTION}"
   -> Vá para o ESTADO 3.

ESTADO 3: CONFIRMAÇÃO
- Aguarde a resposta do usuário sobre a pergunta "Posso responder?".

CASO CONFIRMAÇÃO (Sim, claro, pode, isso mesmo, aham, vai):
   -> Ação: CHAME A TOOL/FUNÇÃO '{SEARCH_TERM_TOOL['name']}' com o termo identificado no ESTADO 2.
   -> Não fale mais nada após chamar a função.

CASO NEGAÇÃO OU DÚVIDA (Não, espera, não é isso, errou):
   -> Resposta OBRIGATÓRIA: "{CLARIFICATION_REQUEST}"
   -> Volte para o ESTADO 2 (Análise).

--- REGRAS GERAIS ---
1. NÃO explique o termo antes da confirmação.
2. Mantenha as frases de controle ("{GREETING}", "{CONFIRMATION_QUESTION}") EXATAS, independente da sua personalidade, mas use o tom de voz do personagem.
"""
