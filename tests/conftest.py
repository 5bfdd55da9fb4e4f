import pytest
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Keep the app's own engine off the developer database
os.environ.setdefault("COMPASS_DATABASE_URL", "sqlite:///:memory:")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from compass.db import Base, get_db
from compass.main import app
from compass.models import Assessment, ComponentCode, ContentModel, ScoringKind, SpecificationVersion

# Use in-memory SQLite for testing to ensure isolation
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def complete_sections(**overrides):
    """Ten populated sections; pass ``section_d={...}`` etc. to replace one."""
    sections = {f"section_{letter}": {"note": f"section {letter}"} for letter in "abcdefghij"}
    sections.update(overrides)
    return sections


@pytest.fixture
def sections():
    return complete_sections


@pytest.fixture(scope="function")
def session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(session):
    """
    Create a TestClient that uses the override_get_db dependency.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_assessment(session):
    def _make(assessment_id="PH-ALPH", component_code=ComponentCode.PH, **fields):
        assessment = Assessment(
            assessment_id=assessment_id,
            component_code=component_code,
            subcomponent_code=fields.pop("subcomponent_code", assessment_id.split("-")[-1]),
            subcomponent_name=fields.pop("subcomponent_name", assessment_id),
            content_model=fields.pop("content_model", ContentModel.UNIVERSAL),
            grade_range=fields.pop("grade_range", "K-1"),
            scoring_kind=fields.pop(
                "scoring_kind", ScoringKind.resolve(assessment_id, component_code)
            ),
            **fields,
        )
        session.add(assessment)
        session.commit()
        return assessment

    return _make


@pytest.fixture
def make_spec(session):
    def _make(assessment_id="PH-ALPH", spec_version_id=None, current=True, **sections):
        spec = SpecificationVersion(
            spec_version_id=spec_version_id or f"{assessment_id}.v1",
            assessment_id=assessment_id,
            is_current=current,
            **complete_sections(**sections),
        )
        session.add(spec)
        if current:
            assessment = session.get(Assessment, assessment_id)
            assessment.current_spec_version_id = spec.spec_version_id
        session.commit()
        return spec

    return _make
