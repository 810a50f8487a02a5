"""
tests/test_api_governance.py — HTTP round-trips through the Flask test client.

Covers:
    1.  Template CRUD status codes (201 / 200 / 204 / 404 / 409)
    2.  Malformed ids answered 400 before any lookup
    3.  Dependency update: self id dropped, cycle 409, cross-governance 400
    4.  Project creation: 201 with instances, 400 on bad selection
    5.  Checklist list order, status gate 412 body, then 200
    6.  Instance patch rejects dependencies_requires (400)
    7.  Audit endpoint, grouped project checklist, workflow instance listing
    8.  Health endpoints, JSON 404 for unknown routes, request id header
"""

BASE = "/api/v1"


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════


def _governance(client, name="AI Governance", version="1.0"):
    rv = client.post(f"{BASE}/governance-templates", json={"name": name, "version": version})
    assert rv.status_code == 201, rv.get_json()
    return rv.get_json()


def _workflow(client, gid, name):
    rv = client.post(f"{BASE}/workflow-templates", json={"governance_template_id": gid, "name": name})
    assert rv.status_code == 201, rv.get_json()
    return rv.get_json()


def _item(client, wid, name, type_="task", deps=None):
    rv = client.post(f"{BASE}/checklist-item-templates", json={
        "workflow_template_id": wid,
        "name": name,
        "type": type_,
        "dependencies_requires": deps or [],
    })
    assert rv.status_code == 201, rv.get_json()
    return rv.get_json()


def _project(client, gid, workflow_ids, name="Credit scoring"):
    return client.post(f"{BASE}/projects", json={
        "name": name,
        "governance_template_id": gid,
        "selected_workflow_template_ids": workflow_ids,
    })


def _setup_chain(client):
    """Governance with one workflow: Collect → Train → Review. Returns project JSON."""
    gov = _governance(client)
    wf = _workflow(client, gov["id"], "Build")
    collect = _item(client, wf["id"], "Collect data")
    train = _item(client, wf["id"], "Train model", deps=[collect["id"]])
    _item(client, wf["id"], "Review", deps=[train["id"]])
    rv = _project(client, gov["id"], [wf["id"]])
    assert rv.status_code == 201, rv.get_json()
    return rv.get_json()


def _items_by_name(client, workflow_instance_id):
    rv = client.get(f"{BASE}/checklist-item-instances?workflow_instance_id={workflow_instance_id}")
    assert rv.status_code == 200
    return {i["name"]: i for i in rv.get_json()["items"]}


# ═════════════════════════════════════════════════════════════════════════════
# Templates
# ═════════════════════════════════════════════════════════════════════════════


class TestTemplateApi:
    def test_governance_crud(self, client):
        gov = _governance(client)
        assert len(gov["id"]) == 24
        assert gov["workflow_templates"] == []

        rv = client.put(f"{BASE}/governance-templates/{gov['id']}", json={"description": "d"})
        assert rv.status_code == 200
        assert rv.get_json()["description"] == "d"

        rv = client.get(f"{BASE}/governance-templates")
        assert rv.get_json()["total"] == 1

        assert client.delete(f"{BASE}/governance-templates/{gov['id']}").status_code == 204
        assert client.get(f"{BASE}/governance-templates/{gov['id']}").status_code == 404

    def test_duplicate_governance_is_409(self, client):
        _governance(client)
        rv = client.post(f"{BASE}/governance-templates", json={"name": "AI Governance", "version": "1.0"})
        assert rv.status_code == 409
        assert rv.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_missing_fields_400(self, client):
        rv = client.post(f"{BASE}/governance-templates", json={"name": "x"})
        assert rv.status_code == 400
        assert rv.get_json()["details"] == {"version": "required"}
        assert rv.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_malformed_id_400(self, client):
        rv = client.get(f"{BASE}/workflow-templates/not-an-id")
        assert rv.status_code == 400
        assert rv.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_unknown_id_404(self, client):
        rv = client.get(f"{BASE}/checklist-item-templates/{'a' * 24}")
        assert rv.status_code == 404
        assert rv.get_json()["code"] == "ERR_NOT_FOUND"

    def test_workflow_for_unknown_governance_404(self, client):
        rv = client.post(f"{BASE}/workflow-templates", json={
            "governance_template_id": "b" * 24, "name": "Orphan",
        })
        assert rv.status_code == 404

    def test_null_name_on_update_is_400(self, client):
        gov = _governance(client)
        wf = _workflow(client, gov["id"], "Build")

        rv = client.put(f"{BASE}/workflow-templates/{wf['id']}", json={"name": None})

        assert rv.status_code == 400
        assert rv.get_json()["code"] == "ERR_VALIDATION_REQUIRED"
        assert rv.get_json()["details"] == {"name": "required"}

    def test_workflow_list_filtered_and_ordered(self, client):
        gov = _governance(client)
        _workflow(client, gov["id"], "One")
        two = _workflow(client, gov["id"], "Two")
        client.put(f"{BASE}/workflow-templates/{two['id']}", json={"order": 0})

        rv = client.get(f"{BASE}/workflow-templates?governance_template_id={gov['id']}")
        assert [(w["name"], w["order"]) for w in rv.get_json()["items"]] == [("Two", 0), ("One", 1)]

    def test_dependency_update_rules(self, client):
        gov = _governance(client)
        wf = _workflow(client, gov["id"], "Build")
        a = _item(client, wf["id"], "A")
        b = _item(client, wf["id"], "B", deps=[a["id"]])

        rv = client.put(f"{BASE}/checklist-item-templates/{a['id']}",
                        json={"dependencies_requires": [a["id"]]})
        assert rv.status_code == 200
        assert rv.get_json()["dependencies_requires"] == []

        rv = client.put(f"{BASE}/checklist-item-templates/{a['id']}",
                        json={"dependencies_requires": [b["id"]]})
        assert rv.status_code == 409
        assert "cycle" in rv.get_json()["error"]

        other = _governance(client, name="Other")
        foreign = _item(client, _workflow(client, other["id"], "X")["id"], "Foreign")
        rv = client.put(f"{BASE}/checklist-item-templates/{a['id']}",
                        json={"dependencies_requires": [foreign["id"]]})
        assert rv.status_code == 400

    def test_delete_item_template_cleans_edges(self, client):
        gov = _governance(client)
        wf = _workflow(client, gov["id"], "Build")
        c = _item(client, wf["id"], "C")
        a = _item(client, wf["id"], "A", deps=[c["id"]])

        assert client.delete(f"{BASE}/checklist-item-templates/{c['id']}").status_code == 204

        rv = client.get(f"{BASE}/checklist-item-templates/{a['id']}")
        assert rv.get_json()["dependencies_requires"] == []
        assert rv.get_json()["order"] == 0


# ═════════════════════════════════════════════════════════════════════════════
# Projects and checklist instances
# ═════════════════════════════════════════════════════════════════════════════


class TestProjectApi:
    def test_create_project(self, client):
        project = _setup_chain(client)
        assert len(project["workflow_instances"]) == 1
        assert project["workflow_instances"][0]["status"] == "active"

    def test_bad_selection_400(self, client):
        gov = _governance(client)
        other = _governance(client, name="Other")
        wf = _workflow(client, other["id"], "Elsewhere")

        rv = _project(client, gov["id"], [wf["id"]])

        assert rv.status_code == 400
        assert "do not belong" in rv.get_json()["error"]
        assert client.get(f"{BASE}/projects").get_json()["total"] == 0

    def test_unknown_governance_400(self, client):
        rv = _project(client, "c" * 24, ["d" * 24])
        assert rv.status_code == 400
        assert rv.get_json()["error"] == "Governance template not found"

    def test_missing_selection_400(self, client):
        gov = _governance(client)
        rv = client.post(f"{BASE}/projects", json={"name": "P", "governance_template_id": gov["id"]})
        assert rv.status_code == 400

    def test_project_delete(self, client):
        project = _setup_chain(client)
        assert client.delete(f"{BASE}/projects/{project['id']}").status_code == 204
        wi = project["workflow_instances"][0]
        assert client.get(f"{BASE}/workflow-instances/{wi['id']}").status_code == 404

    def test_workflow_instances_listing(self, client):
        project = _setup_chain(client)
        rv = client.get(f"{BASE}/workflow-instances?project_id={project['id']}")
        assert rv.status_code == 200
        assert rv.get_json()["total"] == 1

        assert client.get(f"{BASE}/workflow-instances").status_code == 400

    def test_workflow_instance_update(self, client):
        project = _setup_chain(client)
        wi = project["workflow_instances"][0]
        rv = client.put(f"{BASE}/workflow-instances/{wi['id']}", json={"status": "completed"})
        assert rv.status_code == 200
        assert rv.get_json()["status"] == "completed"

        rv = client.put(f"{BASE}/workflow-instances/{wi['id']}", json={"status": "paused"})
        assert rv.status_code == 400


class TestChecklistApi:
    def test_list_is_dependency_ordered(self, client):
        project = _setup_chain(client)
        wi = project["workflow_instances"][0]
        rv = client.get(f"{BASE}/checklist-item-instances?workflow_instance_id={wi['id']}")
        names = [i["name"] for i in rv.get_json()["items"]]
        assert names == ["Collect data", "Train model", "Review"]

    def test_list_unknown_workflow_404(self, client):
        rv = client.get(f"{BASE}/checklist-item-instances?workflow_instance_id={'e' * 24}")
        assert rv.status_code == 404

    def test_status_gate(self, client):
        project = _setup_chain(client)
        items = _items_by_name(client, project["workflow_instances"][0]["id"])
        collect, train = items["Collect data"], items["Train model"]
        assert train["dependencies_requires"] == [collect["id"]]

        rv = client.put(f"{BASE}/checklist-item-instances/{train['id']}/status", json={"status": "complete"})
        assert rv.status_code == 412
        body = rv.get_json()
        assert body["code"] == "ERR_PRECONDITION_FAILED"
        assert body["details"]["blocking"] == [{"id": collect["id"], "status": "incomplete"}]

        rv = client.put(f"{BASE}/checklist-item-instances/{collect['id']}/status", json={"status": "complete"})
        assert rv.status_code == 200

        rv = client.put(f"{BASE}/checklist-item-instances/{train['id']}/status", json={"status": "complete"})
        assert rv.status_code == 200
        assert rv.get_json()["status"] == "complete"

        rv = client.get(f"{BASE}/checklist-item-instances/{train['id']}/audit")
        assert rv.get_json()["items"][0]["changes"]["status"] == {"from": "incomplete", "to": "complete"}

    def test_status_required(self, client):
        project = _setup_chain(client)
        items = _items_by_name(client, project["workflow_instances"][0]["id"])
        rv = client.put(f"{BASE}/checklist-item-instances/{items['Review']['id']}/status", json={})
        assert rv.status_code == 400

    def test_patch_dependencies_forbidden(self, client):
        project = _setup_chain(client)
        items = _items_by_name(client, project["workflow_instances"][0]["id"])
        rv = client.put(f"{BASE}/checklist-item-instances/{items['Review']['id']}",
                        json={"dependencies_requires": []})
        assert rv.status_code == 400
        assert rv.get_json()["error"] == "Cannot update dependencies - they are managed by the system"

    def test_project_checklist_view(self, client):
        project = _setup_chain(client)
        rv = client.get(f"{BASE}/projects/{project['id']}/checklist")
        assert rv.status_code == 200
        items = rv.get_json()["items"]
        assert [i["available"] for i in items] == [True, False, False]


# ═════════════════════════════════════════════════════════════════════════════
# Health and plumbing
# ═════════════════════════════════════════════════════════════════════════════


class TestPlumbing:
    def test_health(self, client):
        rv = client.get(f"{BASE}/health")
        assert rv.status_code == 200
        assert rv.get_json()["database"] == "ok"
        assert client.get(f"{BASE}/health/ready").status_code == 200
        assert client.get(f"{BASE}/health/live").get_json()["status"] == "healthy"

    def test_unknown_route_json_404(self, client):
        rv = client.get(f"{BASE}/nope")
        assert rv.status_code == 404
        assert rv.get_json()["error"] == "Not found"

    def test_request_id_header(self, client):
        rv = client.get(f"{BASE}/health/ready", headers={"X-Request-ID": "abc123"})
        assert rv.headers["X-Request-ID"] == "abc123"
        assert "X-Request-Duration-Ms" in rv.headers

    def test_non_json_body_415(self, client):
        rv = client.post(f"{BASE}/governance-templates", data="name=x", content_type="text/plain")
        assert rv.status_code == 415
        assert rv.get_json()["error"] == "Content-Type must be application/json"

    def test_form_body_415(self, client):
        rv = client.post(f"{BASE}/governance-templates", data={"name": "x"})
        assert rv.status_code == 415
