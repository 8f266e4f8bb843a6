from tenantcore.models import ClientCompany


def test_client_stats(storage, org_a, backdate):
    ids = [
        storage.create(org_a, "clients", {"name": "T1", "industry": "Tech"}).id,
        storage.create(org_a, "clients", {"name": "T2", "industry": "Tech"}).id,
        storage.create(org_a, "clients", {"name": "N1"}).id,
        storage.create(org_a, "clients", {"name": "N2"}).id,
        storage.create(org_a, "clients", {"name": "N3"}).id,
    ]
    backdate(ClientCompany, ids[2], days=40)

    report = storage.stats(org_a, "clients")

    assert report.total == 5
    assert report.recently_added == 4
    # NULL industries get no bucket but still count toward total
    assert report.breakdowns["industry"] == {"Tech": 2}
    assert report.breakdowns["country"] == {}
    assert report.derived_counts["without_contacts"] == 5
    assert report.derived_counts["with_active_engagements"] == 0


def test_derived_counts_follow_related_rows(storage, org_a, org_b):
    acme = storage.create(org_a, "clients", {"name": "Acme"})
    globex = storage.create(org_a, "clients", {"name": "Globex"})
    storage.create(org_a, "contacts", {"first_name": "A", "last_name": "B", "client_company_id": acme.id})
    storage.create(org_a, "engagements", {"name": "Live", "status": "active", "client_company_id": acme.id})
    storage.create(org_a, "engagements", {"name": "Done", "status": "completed", "client_company_id": globex.id})
    # Rows in another organization never count
    storage.create(org_b, "contacts", {"first_name": "X", "last_name": "Y", "client_company_id": globex.id})

    report = storage.stats(org_a, "clients")

    assert report.derived_counts["with_active_engagements"] == 1
    assert report.derived_counts["without_contacts"] == 1


def test_status_breakdown(storage, org_a):
    engagement = storage.create(org_a, "engagements", {"name": "Retainer"})
    for status in ("not_started", "in_progress", "in_progress"):
        storage.create(org_a, "projects", {"name": status, "engagement_id": engagement.id, "status": status})

    report = storage.stats(org_a, "projects")
    assert report.breakdowns["status"] == {"in_progress": 2, "not_started": 1}

    engagement_report = storage.stats(org_a, "engagements")
    assert engagement_report.derived_counts == {"with_projects": 1}


def test_stats_for_empty_organization(storage, org_a):
    report = storage.stats(org_a, "vendors")
    assert report.to_dict() == {"total": 0, "recently_added": 0, "breakdowns": {}, "derived_counts": {}}
