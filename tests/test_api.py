from fastapi.testclient import TestClient

LETTERS = [chr(code) for code in range(ord("a"), ord("z") + 1)]


def _sections(**overrides):
    sections = {f"section_{letter}": {"note": f"section {letter}"} for letter in "abcdefghij"}
    sections.update(overrides)
    return sections


def _create_assessment(client: TestClient, assessment_id="PH-ALPH", component_code="PH"):
    response = client.post(
        "/api/v1/assessments/",
        json={
            "assessment_id": assessment_id,
            "component_code": component_code,
            "subcomponent_code": assessment_id.split("-")[1],
            "subcomponent_name": "Alphabet Knowledge",
            "content_model": "universal",
            "grade_range": "K-1",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_assessment_create_and_list(client: TestClient):
    created = _create_assessment(client)
    assert created["status"] == "stub"
    assert created["scoring_kind"] == "accuracy"

    duplicate = client.post("/api/v1/assessments/", json={**created, "component_code": "PH"})
    assert duplicate.status_code == 409

    listing = client.get("/api/v1/assessments/").json()
    assert listing["total"] == 1
    assert client.get("/api/v1/assessments/NOPE").status_code == 404


def test_registry_workflow(client: TestClient):
    _create_assessment(client)
    _create_assessment(client, "FL-ORF", "FL")

    spec = client.post(
        "/api/v1/specifications/",
        json={
            "spec_version_id": "PH-ALPH.v1",
            "assessment_id": "PH-ALPH",
            "make_current": True,
            **_sections(
                section_d={"generation_source": "stimulus_pool", "stimulus_pool": LETTERS,
                           "stimulus_rules": "exactly 26 letters"},
                section_i={"forms_per_level": 1},
            ),
        },
    )
    assert spec.status_code == 201, spec.text
    assert spec.json()["completeness_percent"] == 100
    assert spec.json()["is_current"] is True

    # Activation is refused until the chain is complete
    refused = client.patch("/api/v1/assessments/PH-ALPH/status", json={"status": "active"})
    assert refused.status_code == 400
    assert refused.json()["detail"].startswith("Cannot activate:")

    result = client.post("/api/v1/specifications/PH-ALPH.v1/provision").json()
    assert result["success"] is True
    assert result["created"]["bank"]["content_bank_id"] == "PH-ALPH.bank1"
    assert result["created"]["forms"][0]["item_count"] == 26

    chain = client.get("/api/v1/assessments/PH-ALPH/chain-status").json()
    assert chain["is_complete"] is True
    assert chain["percent"] == 100

    batch = client.get("/api/v1/assessments/chain-status").json()
    assert batch["PH-ALPH"]["completed_steps"] == 5
    assert batch["FL-ORF"]["missing_steps"] == ["SPEC", "BANK", "FORMS", "ITEMS", "SCORING"]

    forms = client.get("/api/v1/assessments/PH-ALPH/forms").json()
    assert [f["form_id"] for f in forms] == ["PH-ALPH.all.form01"]
    assert forms[0]["grade_label"] == "All Grades"

    # Still refused: the version has not been reviewed
    assert client.patch("/api/v1/assessments/PH-ALPH/status", json={"status": "active"}).status_code == 400
    assert client.post("/api/v1/specifications/PH-ALPH.v1/validate").status_code == 200

    activated = client.patch("/api/v1/assessments/PH-ALPH/status", json={"status": "active"})
    assert activated.status_code == 200
    assert activated.json()["status"] == "active"


def test_incomplete_spec_provisioning_reports_missing_sections(client: TestClient):
    _create_assessment(client)
    client.post(
        "/api/v1/specifications/",
        json={"spec_version_id": "PH-ALPH.v1", "assessment_id": "PH-ALPH",
              **_sections(section_b={}, section_g={})},
    )

    completeness = client.get("/api/v1/specifications/PH-ALPH.v1/completeness").json()
    assert completeness == {"valid": False, "missing": ["SECTION B", "SECTION G"]}

    result = client.post("/api/v1/specifications/PH-ALPH.v1/provision").json()
    assert result["success"] is False
    assert result["errors"] == ["ASR incomplete. Missing: SECTION B, SECTION G"]

    invalid = client.post("/api/v1/specifications/PH-ALPH.v1/validate")
    assert invalid.status_code == 400

    assert client.post("/api/v1/specifications/NOPE.v1/provision").status_code == 404


def test_promote_endpoint(client: TestClient):
    _create_assessment(client)
    for version in ("PH-ALPH.v1", "PH-ALPH.v2"):
        client.post(
            "/api/v1/specifications/",
            json={"spec_version_id": version, "assessment_id": "PH-ALPH", **_sections()},
        )
    client.post("/api/v1/specifications/PH-ALPH.v1/promote")
    promoted = client.post("/api/v1/specifications/PH-ALPH.v2/promote").json()

    assert promoted["is_current"] is True
    assert client.get("/api/v1/specifications/PH-ALPH.v1").json()["is_current"] is False
    assert client.get("/api/v1/assessments/PH-ALPH").json()["current_spec_version_id"] == "PH-ALPH.v2"


def test_session_scoring_endpoint(client: TestClient):
    _create_assessment(client, "FL-LNF", "FL")
    client.post(
        "/api/v1/specifications/",
        json={
            "spec_version_id": "FL-LNF.v1", "assessment_id": "FL-LNF", "make_current": True,
            **_sections(section_d={"stimulus_pool": ["a", "b", "c"],
                                   "stimulus_rules": ["exactly 3 letters"]},
                        section_i={"forms_per_level": 1}),
        },
    )
    client.post("/api/v1/specifications/FL-LNF.v1/provision")

    session = client.post(
        "/api/v1/sessions/",
        json={"assessment_id": "FL-LNF", "form_id": "FL-LNF.all.form01", "student_name": "Student A"},
    )
    assert session.status_code == 201, session.text
    session_id = session.json()["session_id"]
    assert session.json()["grade_tag"] == "all"

    for n, is_correct, elapsed in ((1, True, 12.0), (2, False, 30.5), (3, True, 45.0)):
        recorded = client.post(
            f"/api/v1/sessions/{session_id}/responses",
            json={"item_id": f"FL-LNF.all.form01.item{n:03d}", "is_correct": is_correct,
                  "elapsed_seconds": elapsed},
        )
        assert recorded.status_code == 200, recorded.text

    scored = client.post(f"/api/v1/sessions/{session_id}/score").json()
    assert scored["scoring_type"] == "fluency"
    assert scored["scores"]["items_per_minute"] == 2.7
    assert scored["scores"]["accuracy_percentage"] == 66.7

    assert client.post("/api/v1/sessions/missing/score").status_code == 404
    assert client.post(
        f"/api/v1/sessions/{session_id}/responses", json={"item_id": "other.item001"}
    ).status_code == 404
