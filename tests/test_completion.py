from detran_checklist import engine
from detran_checklist.completion import ChecklistViewer, CompletionState, ServiceView
from detran_checklist.models import ChecklistItem, ChecklistSection, Service, ServiceCategory


def build_service(service_id="svc", *, items=("a", "b"), completed=()):
    return Service(
        id=service_id,
        title="Renovação da CNH",
        category=ServiceCategory.LICENSE,
        description="Documentos para renovar a CNH.",
        sections=[
            ChecklistSection(
                id=f"{service_id}-s1",
                title="Documentos Necessários",
                items=[
                    ChecklistItem(id=item_id, text=item_id.upper(), is_completed=item_id in completed)
                    for item_id in items
                ],
            )
        ],
    )


def completed_ids(service):
    return {item.id for section in service.sections for item in section.items if item.is_completed}


def test_completion_state_round_trips_through_service():
    service = build_service(completed=("a",))
    state = CompletionState.from_service(service)

    assert state.completed_ids == frozenset({"a"})
    assert not state.is_empty
    assert completed_ids(state.apply(engine.reset_all_items(service))) == {"a"}


def test_apply_ignores_unknown_ids_and_prune_drops_them():
    service = build_service()
    state = CompletionState(frozenset({"a", "ghost"}))

    assert completed_ids(state.apply(service)) == {"a"}
    assert state.prune(service).completed_ids == frozenset({"a"})


def test_view_keeps_persisted_tree_unchecked():
    view = ServiceView(build_service(completed=("a",)))

    assert completed_ids(view.service) == set()
    assert view.state.is_empty

    view.toggle("svc-s1", "b")
    assert completed_ids(view.merged()) == {"b"}
    assert completed_ids(view.service) == set()


def test_view_refresh_keeps_surviving_checks():
    view = ServiceView(build_service(items=("a", "b")))
    view.toggle("svc-s1", "a")
    view.toggle("svc-s1", "b")

    merged = view.refresh(build_service(items=("a", "c")))

    assert completed_ids(merged) == {"a"}
    assert view.state.completed_ids == frozenset({"a"})


def test_view_reset_clears_state():
    view = ServiceView(build_service())
    view.toggle("svc-s1", "a")

    reset = view.reset()
    assert completed_ids(reset) == set()
    assert view.state.is_empty


def test_viewer_opening_another_service_leaves_current():
    viewer = ChecklistViewer()
    first = viewer.open(build_service("one"))
    first.toggle("one-s1", "a")

    second = viewer.open(build_service("two"))

    assert viewer.current is second
    assert viewer.view_for("one") is None
    assert first.state.is_empty


def test_viewer_reopening_same_service_keeps_state():
    viewer = ChecklistViewer()
    view = viewer.open(build_service())
    view.toggle("svc-s1", "a")

    again = viewer.open(build_service())

    assert again is view
    assert completed_ids(again.merged()) == {"a"}


def test_leave_resets_and_closes_view():
    viewer = ChecklistViewer()
    view = viewer.open(build_service())
    view.toggle("svc-s1", "a")

    cleared = viewer.leave()

    assert cleared is not None
    assert completed_ids(cleared) == set()
    assert viewer.current is None
    assert viewer.leave() is None
