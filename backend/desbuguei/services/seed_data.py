"""Hand-written records served when the store misses, so demos work offline.

Keyed by the raw lowercased query, not by normalized id.
"""

from desbuguei.schemas.term import TermRecord

LOCAL_TERMS: dict[str, TermRecord] = {
    "api": TermRecord.model_validate({
        "id": "api",
        "term": "API",
        "fullTerm": "Application Programming Interface",
        "category": "Desenvolvimento",
        "definition": (
            "APIs permitem que diferentes sistemas de software conversem entre si automaticamente, "
            "eliminando tarefas manuais e conectando sua empresa ao mercado digital."
        ),
        "phonetic": "Ei-pi-ai",
        "slang": None,
        "translation": "INTERFACE DE PROGRAMAÇÃO DE APLICATIVOS",
        "examples": [
            {
                "title": "AUTOMAÇÃO DE FLUXOS",
                "description": "Elimina a intervenção humana ao conectar processos operacionais críticos.",
            },
            {
                "title": "SINCRONIZAÇÃO DE DADOS",
                "description": "Mantém Vendas, RH e Financeiro atualizados em todas as plataformas.",
            },
        ],
        "analogies": [
            {
                "title": "O GARÇOM NO RESTAURANTE",
                "description": (
                    "Você (cliente) pede ao garçom (API), que leva o pedido à cozinha (sistema) e traz o prato."
                ),
            },
            {
                "title": "TOMADA UNIVERSAL",
                "description": "Interface padrão para conectar qualquer aparelho à energia sem saber como a rede funciona.",
            },
        ],
        "practicalUsage": {
            "title": "Na reunião de alinhamento (Daily)",
            "content": (
                "Pessoal, a API de pagamentos caiu porque o gateway mudou a autenticação. "
                "Vou precisar refatorar a integração hoje à tarde pra gente voltar a vender."
            ),
        },
        "relatedTerms": ["Endpoint", "JSON", "REST", "Webhook", "Gateway", "SDK"],
    }),
}

SEED_TERMS = [
    "Kubernetes", "Docker", "CI/CD", "Microservices", "Serverless",
    "React", "Node.js", "Python", "Machine Learning", "LLM",
    "Cybersecurity", "Zero Trust", "Firewall", "VPN", "Encryption",
    "Agile", "Scrum", "Kanban", "MVP", "Product Market Fit",
]
