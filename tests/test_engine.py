import pytest

from detran_checklist import engine
from detran_checklist.models import ChecklistItem, ChecklistSection, Service, ServiceCategory


def make_item(item_id, *, optional=False, completed=False):
    return ChecklistItem(
        id=item_id,
        text=f"Documento {item_id}",
        is_optional=optional,
        is_completed=completed,
    )


def make_section(section_id, items, *, optional=False, alternative=False):
    return ChecklistSection(
        id=section_id,
        title=f"Seção {section_id}",
        items=items,
        is_optional=optional,
        is_alternative=alternative,
    )


def make_service(*sections):
    return Service(
        id="svc",
        title="Transferência de Propriedade",
        category=ServiceCategory.VEHICLE,
        description="Documentos para transferir a propriedade.",
        sections=list(sections),
    )


def test_required_section_completes_when_both_items_toggled():
    service = make_service(make_section("s1", [make_item("a"), make_item("b")]))

    progress = engine.service_progress(service)
    assert (progress.completed_count, progress.total_count, progress.percentage) == (0, 1, 0.0)
    assert not engine.is_service_complete(service)

    service = engine.toggle_item(service, "s1", "a")
    service = engine.toggle_item(service, "s1", "b")

    progress = engine.service_progress(service)
    assert (progress.completed_count, progress.total_count, progress.percentage) == (1, 1, 100.0)
    assert engine.is_service_complete(service)


@pytest.mark.parametrize("chosen", ["rg", "cnh", "passaporte"])
def test_any_single_item_satisfies_alternative_section(chosen):
    section = make_section(
        "ident",
        [make_item("rg"), make_item("cnh"), make_item("passaporte")],
        alternative=True,
    )
    service = engine.toggle_item(make_service(section), "ident", chosen)

    assert engine.is_section_complete(service.sections[0])
    assert engine.is_service_complete(service)


def test_alternative_section_counts_optional_items():
    section = make_section(
        "pay", [make_item("pix", optional=True, completed=True), make_item("boleto")], alternative=True
    )
    assert engine.is_section_complete(section)


def test_alternative_section_incomplete_without_checks():
    section = make_section("pay", [make_item("pix"), make_item("boleto")], alternative=True)
    assert not engine.is_section_complete(section)


def test_empty_required_section_blocks_service_completion():
    done = make_section("s1", [make_item("a", completed=True)])
    only_optional = make_section("s2", [make_item("b", optional=True)])
    service = make_service(done, only_optional)

    assert not engine.is_service_complete(service)
    progress = engine.service_progress(service)
    assert (progress.completed_count, progress.total_count, progress.percentage) == (1, 2, 50.0)


def test_empty_section_reports_full_percentage_but_not_complete():
    section = make_section("empty", [])
    assert engine.section_progress_percentage(section) == 100.0
    assert not engine.is_section_complete(section)

    only_optional = make_section("opt", [make_item("x", optional=True)])
    assert engine.section_progress_percentage(only_optional) == 100.0
    assert not engine.is_section_complete(only_optional)


def test_section_percentage_ignores_optional_items():
    section = make_section(
        "s",
        [
            make_item("a", completed=True),
            make_item("b"),
            make_item("c", optional=True, completed=True),
        ],
    )
    assert engine.section_progress_percentage(section) == 50.0


def test_optional_sections_do_not_count():
    required = make_section("s1", [make_item("a", completed=True)])
    optional = make_section("s2", [make_item("b")], optional=True)
    service = make_service(required, optional)

    assert engine.is_service_complete(service)
    progress = engine.service_progress(service)
    assert progress.total_count == 1
    assert progress.percentage == 100.0


def test_service_without_required_sections_is_never_complete():
    service = make_service(make_section("s1", [make_item("a", completed=True)], optional=True))
    assert not engine.is_service_complete(service)
    assert engine.service_progress(service).percentage == 0.0
    assert not engine.is_service_complete(make_service())


def test_toggle_is_self_inverse_and_pure():
    service = make_service(make_section("s1", [make_item("a"), make_item("b")]))

    toggled = engine.toggle_item(service, "s1", "a")
    assert toggled.sections[0].items[0].is_completed
    assert not service.sections[0].items[0].is_completed
    # untouched items are shared with the input
    assert toggled.sections[0].items[1] is service.sections[0].items[1]

    assert engine.toggle_item(toggled, "s1", "a") == service


@pytest.mark.parametrize(
    ("section_id", "item_id"),
    [("missing", "a"), ("s1", "missing"), ("s2", "a")],
)
def test_toggle_unknown_ids_is_noop(section_id, item_id):
    service = make_service(
        make_section("s1", [make_item("a")]),
        make_section("s2", [make_item("b")]),
    )
    assert engine.toggle_item(service, section_id, item_id) is service


def test_reset_clears_every_item_and_is_idempotent():
    service = make_service(
        make_section("s1", [make_item("a"), make_item("b")]),
        make_section("s2", [make_item("c")], alternative=True),
    )
    service = engine.toggle_item(service, "s1", "a")
    service = engine.toggle_item(service, "s2", "c")
    service = engine.toggle_item(service, "s1", "a")
    service = engine.toggle_item(service, "s1", "b")

    reset = engine.reset_all_items(service)
    assert all(not item.is_completed for section in reset.sections for item in section.items)
    assert engine.reset_all_items(reset) == reset


def test_progress_percentage_stays_in_bounds():
    service = make_service(
        make_section("s1", [make_item("a", completed=True)]),
        make_section("s2", [make_item("b")]),
        make_section("s3", [make_item("c", completed=True)], alternative=True),
    )
    progress = engine.service_progress(service)
    assert 0.0 <= progress.percentage <= 100.0
    assert progress.completed_count == 2
    assert progress.total_count == 3


def test_item_progress_separates_required_counts():
    service = make_service(
        make_section("s1", [make_item("a", completed=True), make_item("b", optional=True)]),
        make_section("s2", [make_item("c", completed=True)], optional=True),
    )
    counters = engine.item_progress(service)
    assert counters.total == 3
    assert counters.completed == 2
    assert counters.required_total == 1
    assert counters.required_completed == 1


def test_section_summaries_follow_section_order():
    service = make_service(
        make_section("s1", [make_item("a", completed=True)]),
        make_section("s2", [make_item("b")], alternative=True),
    )
    summaries = engine.section_summaries(service)
    assert [summary.section_id for summary in summaries] == ["s1", "s2"]
    assert summaries[0].is_complete and summaries[0].percentage == 100.0
    assert not summaries[1].is_complete and summaries[1].is_alternative
