"""Built-in DETRAN-PE services and SQL export of a catalog."""

from __future__ import annotations

import uuid
from typing import Any, Dict, Iterable, List

from .catalog import service_from_dict
from .models import Service

SEED_NAMESPACE = uuid.UUID("5b0f8e62-3c1e-4f57-9a51-0d7f0b6f4a10")

INITIAL_SERVICES: List[Dict[str, Any]] = [
    {
        "title": "Transferência de Propriedade",
        "category": "Veículo",
        "description": "Documentação necessária para transferir a propriedade de um veículo para outro proprietário.",
        "sections": [
            {
                "title": "Documentos Básicos",
                "items": [
                    {
                        "text": "ATPV (Autorização para Transferência de Propriedade Veicular)",
                        "observation": "Pode ser eletrônico ou em papel (CRV antigo)",
                        "tags": ["Original"],
                    },
                    {
                        "text": "Comprovante de Vistoria Detran",
                        "observation": "Pode ser eletrônico em alguns estados",
                        "tags": ["Digital"],
                    },
                ],
            },
            {
                "title": "Identificação",
                "is_alternative": True,
                "items": [
                    {"text": "RG", "tags": ["Original"]},
                    {"text": "CNH", "tags": ["Original"]},
                    {"text": "Passaporte", "tags": ["Original"]},
                ],
            },
            {
                "title": "Pessoa Física",
                "items": [
                    {
                        "text": "Documento de Identificação Oficial com Foto",
                        "observation": "Identidade, CNH, Carteira de Trabalho",
                        "tags": ["Original", "Original e Cópia"],
                    },
                    {
                        "text": "CPF",
                        "observation": "Caso não conste no documento de identificação",
                        "tags": ["Original"],
                    },
                ],
            },
            {
                "title": "Pessoa Jurídica",
                "is_optional": True,
                "items": [
                    {
                        "text": "Cartão CNPJ",
                        "observation": "Pode ser impresso pelo atendente",
                        "is_optional": True,
                    },
                    {
                        "text": "Contrato Social ou Estatuto e Ata de Nomeação da Diretoria",
                        "tags": ["Original", "Original e Cópia"],
                    },
                ],
            },
        ],
    },
    {
        "title": "Primeira Habilitação",
        "category": "Habilitação",
        "description": "Documentação necessária para obter a primeira habilitação.",
        "sections": [
            {
                "title": "Documentos Necessários",
                "items": [
                    {"text": "Documento de Identidade Original", "tags": ["Original"]},
                    {"text": "CPF", "tags": ["Original"]},
                    {
                        "text": "Comprovante de Residência Recente (últimos 3 meses)",
                        "tags": ["Original", "Digital ou Físico"],
                    },
                    {"text": "Exame Médico e Psicológico", "tags": ["Original"]},
                ],
            },
            {
                "title": "Comprovante de Pagamento",
                "is_alternative": True,
                "items": [
                    {"text": "Boleto bancário quitado", "tags": ["Original", "Digital"]},
                    {"text": "Comprovante de pagamento via PIX", "tags": ["Digital"]},
                    {"text": "Comprovante de transferência bancária", "tags": ["Digital"]},
                ],
            },
        ],
    },
    {
        "title": "Renovação da CNH",
        "category": "Habilitação",
        "description": "Documentação necessária para renovar a CNH.",
        "sections": [
            {
                "title": "Documentos Necessários",
                "items": [
                    {"text": "CNH atual (mesmo vencida)", "tags": ["Original"]},
                    {"text": "Documento de Identidade Original", "tags": ["Original"]},
                    {
                        "text": "Comprovante de Residência Recente (últimos 3 meses)",
                        "tags": ["Digital", "Físico"],
                    },
                    {"text": "Exame Médico (para todas as categorias)", "tags": ["Original"]},
                    {
                        "text": "Exame Psicológico (para motoristas profissionais)",
                        "is_optional": True,
                        "tags": ["Original"],
                    },
                ],
            },
        ],
    },
    {
        "title": "Licenciamento Anual",
        "category": "Veículo",
        "description": "Documentação necessária para realizar o licenciamento anual do veículo.",
        "sections": [
            {
                "title": "Documentos Necessários",
                "items": [
                    {"text": "CRLV do ano anterior", "tags": ["Original", "Digital"]},
                    {"text": "Comprovante de pagamento de IPVA", "tags": ["Digital"]},
                    {
                        "text": "Comprovante de pagamento de seguro DPVAT (quando aplicável)",
                        "is_optional": True,
                        "tags": ["Digital"],
                    },
                    {
                        "text": "Comprovante de pagamento da taxa de licenciamento",
                        "tags": ["Digital"],
                    },
                    {
                        "text": "Comprovante de pagamento de multas (se houver)",
                        "is_optional": True,
                        "tags": ["Digital"],
                    },
                ],
            },
        ],
    },
    {
        "title": "Recurso de Multa",
        "category": "Infrações",
        "description": "Documentação necessária para entrar com recurso contra uma multa.",
        "sections": [
            {
                "title": "Documentos Necessários",
                "items": [
                    {"text": "Notificação da Infração", "tags": ["Original", "Digital"]},
                    {
                        "text": "Documento de Identificação do Proprietário",
                        "tags": ["Original", "Original e Cópia"],
                    },
                    {"text": "CRLV do Veículo", "tags": ["Original", "Digital"]},
                    {"text": "Formulário de Recurso preenchido", "tags": ["Físico"]},
                    {
                        "text": "Provas que fundamentem o recurso (se houver)",
                        "is_optional": True,
                        "tags": ["Físico", "Digital"],
                    },
                ],
            },
            {
                "title": "Anexos Opcionais",
                "is_optional": True,
                "items": [
                    {"text": "Fotografias do local da infração", "tags": ["Digital"]},
                    {"text": "Declaração de testemunhas", "tags": ["Físico"]},
                ],
            },
        ],
    },
]


def _seed_id(*parts: str) -> str:
    return str(uuid.uuid5(SEED_NAMESPACE, "/".join(parts)))


def initial_services() -> List[Service]:
    """Return the built-in catalog with stable ids, so re-seeding upserts."""

    services = []
    for service in INITIAL_SERVICES:
        title = service["title"]
        payload = {
            **service,
            "id": _seed_id(title),
            "sections": [
                {
                    **section,
                    "id": _seed_id(title, section["title"]),
                    "items": [
                        {**item, "id": _seed_id(title, section["title"], str(index), item["text"])}
                        for index, item in enumerate(section["items"])
                    ],
                }
                for section in service["sections"]
            ],
        }
        services.append(service_from_dict(payload))
    return services


def _quote(value: str | None) -> str:
    if value is None:
        return "NULL"
    return "'" + value.replace("'", "''") + "'"


def _bool(value: bool) -> str:
    return "TRUE" if value else "FALSE"


def generate_seed_sql(services: Iterable[Service], *, table_prefix: str = "ckdt_") -> str:
    """Render INSERT statements for the services, checklists and items tables."""

    lines = ["-- Insert initial services"]
    for service in services:
        lines.append("")
        lines.append(f"-- Service: {service.title}")
        lines.append(
            f"INSERT INTO {table_prefix}services (id, title, category, description)\n"
            f"VALUES ({_quote(service.id)}, {_quote(service.title)}, "
            f"{_quote(service.category.value)}, {_quote(service.description)});"
        )
        for section in service.sections:
            lines.append("")
            lines.append(f"-- Checklist: {section.title}")
            lines.append(
                f"INSERT INTO {table_prefix}checklists "
                "(id, service_id, title, is_optional, is_alternative, position)\n"
                f"VALUES ({_quote(section.id)}, {_quote(service.id)}, {_quote(section.title)}, "
                f"{_bool(section.is_optional)}, {_bool(section.is_alternative)}, {section.position});"
            )
            for item in section.items:
                if item.tags:
                    tags = "ARRAY[" + ", ".join(
                        f"{_quote(tag.value)}::tag_type" for tag in item.tags
                    ) + "]"
                else:
                    tags = "NULL"
                lines.append(
                    f"INSERT INTO {table_prefix}checklist_items "
                    "(id, checklist_id, text, observation, tags, is_optional, position)\n"
                    f"VALUES ({_quote(item.id)}, {_quote(section.id)}, {_quote(item.text)}, "
                    f"{_quote(item.observation)}, {tags}, {_bool(item.is_optional)}, {item.position});"
                )
    return "\n".join(lines) + "\n"
