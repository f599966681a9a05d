from detran_checklist import engine
from detran_checklist.catalog import service_from_dict
from detran_checklist.legacy import (
    alternative_group_of,
    is_group_satisfied,
    normalise_service_payload,
)


LEGACY_PAYLOAD = {
    "id": "transfer",
    "title": "Transferência de Propriedade",
    "category": "Veículo",
    "description": "Documentação necessária para transferir a propriedade.",
    "checklists": [
        {
            "id": "basic",
            "title": "Documentos Básicos",
            "isOptional": False,
            "position": 0,
            "items": [
                {"id": "atpv", "text": "ATPV", "tag": "Original"},
                {"id": "rg", "text": "RG", "alternativeOf": "ident", "tags": None},
                {"id": "cnh", "text": "CNH", "alternativeOf": "ident"},
                {"id": "passport", "text": "Passaporte", "alternativeOf": "ident"},
            ],
        },
    ],
}


def test_group_helpers_work_on_raw_items():
    items = LEGACY_PAYLOAD["checklists"][0]["items"]
    assert alternative_group_of(items[0]) is None
    assert alternative_group_of(items[1]) == "ident"
    assert not is_group_satisfied(items, "ident")
    assert is_group_satisfied([{**items[2], "isCompleted": True}], "ident")


def test_item_groups_become_alternative_sections():
    normalised = normalise_service_payload(LEGACY_PAYLOAD)
    sections = normalised["sections"]

    assert [section["id"] for section in sections] == ["basic", "basic-ident"]
    basic, ident = sections
    assert [item["id"] for item in basic["items"]] == ["atpv"]
    assert basic["items"][0]["tags"] == ["Original"]
    assert ident["is_alternative"] is True
    assert ident["title"] == "RG"
    assert [item["id"] for item in ident["items"]] == ["rg", "cnh", "passport"]
    assert [item["position"] for item in ident["items"]] == [0, 1, 2]
    assert [section["position"] for section in sections] == [0, 1]


def test_migrated_service_completes_like_item_groups():
    service = service_from_dict(LEGACY_PAYLOAD)
    assert not engine.is_service_complete(service)

    service = engine.toggle_item(service, "basic", "atpv")
    assert not engine.is_service_complete(service)

    service = engine.toggle_item(service, "basic-ident", "cnh")
    assert engine.is_service_complete(service)


def test_section_emptied_by_migration_is_dropped():
    payload = {
        "id": "svc",
        "title": "Primeira Habilitação",
        "category": "Habilitação",
        "sections": [
            {
                "id": "pay",
                "title": "Pagamento",
                "isOptional": True,
                "items": [
                    {"id": "pix", "text": "PIX", "alternativeOf": "p"},
                    {"id": "boleto", "text": "Boleto", "alternativeOf": "p"},
                ],
            }
        ],
    }
    sections = normalise_service_payload(payload)["sections"]

    assert [section["id"] for section in sections] == ["pay-p"]
    assert sections[0]["is_optional"] is True


def test_sections_and_items_sorted_by_position():
    payload = {
        "id": "svc",
        "title": "Licenciamento Anual",
        "category": "Veículo",
        "sections": [
            {
                "id": "second",
                "title": "B",
                "position": 1,
                "items": [
                    {"id": "y", "text": "Y", "position": 5},
                    {"id": "x", "text": "X", "position": 2},
                ],
            },
            {"id": "first", "title": "A", "position": 0, "items": []},
            {"id": "third", "title": "C", "position": None, "items": []},
        ],
    }
    service = service_from_dict(payload)

    assert [section.id for section in service.sections] == ["first", "second", "third"]
    assert [item.id for item in service.sections[1].items] == ["x", "y"]
    assert [item.position for item in service.sections[1].items] == [0, 1]


def test_optional_leftovers_do_not_block_completion():
    payload = {
        "id": "svc",
        "title": "Transferência de Propriedade",
        "category": "Veículo",
        "sections": [
            {
                "id": "basic",
                "title": "Documentos Básicos",
                "items": [
                    {"id": "proxy", "text": "Procuração", "isOptional": True},
                    {"id": "rg", "text": "RG", "alternativeOf": "ident"},
                    {"id": "cnh", "text": "CNH", "alternativeOf": "ident"},
                ],
            }
        ],
    }
    service = service_from_dict(payload)

    basic, ident = service.sections
    assert basic.is_optional
    assert [item.id for item in basic.items] == ["proxy"]
    assert ident.is_alternative and not ident.is_optional

    service = engine.toggle_item(service, "basic-ident", "cnh")
    assert engine.is_service_complete(service)


def test_groups_inside_alternative_section_are_not_split():
    payload = {
        "id": "svc",
        "title": "Licenciamento Anual",
        "category": "Veículo",
        "sections": [
            {
                "id": "basic",
                "title": "Pagamento",
                "isAlternative": True,
                "items": [
                    {"id": "pix", "text": "PIX"},
                    {"id": "rg", "text": "Boleto", "alternativeOf": "g"},
                    {"id": "cnh", "text": "Débito", "alternativeOf": "g"},
                ],
            }
        ],
    }
    service = service_from_dict(payload)

    (section,) = service.sections
    assert section.id == "basic"
    assert [item.id for item in section.items] == ["pix", "rg", "cnh"]
    assert all(alternative_group_of(item) is None for item in section.items)

    service = engine.toggle_item(service, "basic", "pix")
    assert engine.is_service_complete(service)
