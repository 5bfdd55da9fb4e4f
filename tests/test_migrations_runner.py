from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import IntegrityError

from compass.db import Base, create_registry_engine
from compass.migrations import run_migrations


def test_run_migrations_adds_index_to_existing_table(tmp_path: Path) -> None:
    db_path = tmp_path / "registry.db"
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE specification_versions ("
                "spec_version_id TEXT PRIMARY KEY, "
                "assessment_id TEXT, "
                "is_current BOOLEAN"
                ")"
            )
        )

    applied = run_migrations(engine)

    assert applied == ["0001"]
    assert (tmp_path / "registry.db.bak").exists()
    with engine.begin() as conn:
        indexes = {
            row[1]
            for row in conn.execute(text("PRAGMA index_list(specification_versions)")).fetchall()
        }
        assert "uq_specification_current" in indexes
        versions = conn.execute(
            text("SELECT version FROM schema_migrations")
        ).fetchall()
        assert [row[0] for row in versions] == ["0001"]

    assert run_migrations(engine) == []


def test_run_migrations_on_fresh_schema_is_harmless(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'fresh.db'}")
    Base.metadata.create_all(bind=engine)

    assert run_migrations(engine) == ["0001"]


def test_current_flag_is_unique_per_assessment(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'unique.db'}")
    Base.metadata.create_all(bind=engine)
    run_migrations(engine)

    with engine.begin() as conn:
        conn.execute(text("INSERT INTO assessments (assessment_id, component_code, subcomponent_code, "
                          "subcomponent_name, content_model, grade_range, status, scoring_kind, "
                          "created_at, updated_at) VALUES ('PH-ALPH', 'PH', 'ALPH', 'Alphabet', "
                          "'UNIVERSAL', 'K', 'STUB', 'ACCURACY', CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"))
        conn.execute(text("INSERT INTO specification_versions (spec_version_id, assessment_id, "
                          "validation_status, is_current, created_at, updated_at) VALUES "
                          "('PH-ALPH.v1', 'PH-ALPH', 'INCOMPLETE', 1, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"))
    with pytest.raises(IntegrityError):
        with engine.begin() as conn:
            conn.execute(text("INSERT INTO specification_versions (spec_version_id, assessment_id, "
                              "validation_status, is_current, created_at, updated_at) VALUES "
                              "('PH-ALPH.v2', 'PH-ALPH', 'INCOMPLETE', 1, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"))


def test_registry_engine_prepares_sqlite_file(tmp_path: Path) -> None:
    engine = create_registry_engine(f"sqlite:///{tmp_path / 'nested' / 'compass.db'}")

    assert (tmp_path / "nested").is_dir()
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
