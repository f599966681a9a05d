from detran_checklist import engine
from detran_checklist.seed import INITIAL_SERVICES, generate_seed_sql, initial_services


def test_initial_services_have_stable_ids():
    first = initial_services()
    second = initial_services()

    assert [service.id for service in first] == [service.id for service in second]
    assert len(first) == len(INITIAL_SERVICES)
    item_ids = [item.id for service in first for section in service.sections for item in section.items]
    assert len(set(item_ids)) == len(item_ids)


def test_initial_services_start_unchecked():
    for service in initial_services():
        assert not engine.is_service_complete(service)
        assert engine.service_progress(service).completed_count == 0


def test_transfer_service_has_identification_alternative():
    transfer = next(s for s in initial_services() if s.title == "Transferência de Propriedade")
    ident = next(section for section in transfer.sections if section.title == "Identificação")

    assert ident.is_alternative
    assert [item.text for item in ident.items] == ["RG", "CNH", "Passaporte"]


def test_generate_seed_sql_escapes_and_renders_tags():
    services = initial_services()
    sql = generate_seed_sql(services, table_prefix="ckdt_")

    assert sql.startswith("-- Insert initial services")
    assert sql.count("INSERT INTO ckdt_services") == len(services)
    assert "ARRAY['Original'::tag_type, 'Original e Cópia'::tag_type]" in sql
    assert "'Cartão CNPJ', 'Pode ser impresso pelo atendente', NULL, TRUE, 0);" in sql


def test_generate_seed_sql_quotes_apostrophes():
    service = initial_services()[0].model_copy(update={"title": "Veículo d'Água"})
    sql = generate_seed_sql([service], table_prefix="x_")

    assert "'Veículo d''Água'" in sql
    assert "INSERT INTO x_checklists" in sql
