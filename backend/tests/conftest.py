import os

# Keep test runs from writing rotating log files
os.environ.setdefault("LOG_TO_FILE", "false")

from datetime import datetime

import pytest

from app.models import InstitutionRecord, InstitutionStatistics

NOW = datetime(2024, 3, 15, 10, 30)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def records():
    return [
        InstitutionRecord(
            id="inst-1",
            name="Colegio San Martín",
            address="Av. Libertador 1200",
            phone="+54 11 4000-0000",
            email="contacto@sanmartin.edu",
            created_at=datetime(2024, 1, 15, 9, 0),
            updated_at=datetime(2024, 2, 1, 18, 45),
        ),
        InstitutionRecord(
            id="inst-2",
            name="Instituto Belgrano",
            address=None,
            phone="+54 11 5000-0000",
            email="info@belgrano.edu",
            created_at="2024-01-20T08:15:00",
            updated_at="not a date",
        ),
        InstitutionRecord(
            id="inst-3",
            name="Escuela Técnica N° 5",
            address="Calle 5, 123",
            phone=None,
            email=None,
        ),
    ]


@pytest.fixture
def stats():
    return {
        "inst-1": InstitutionStatistics(
            courses_count=4,
            students_count=100,
            professors_count=8,
            recent_activity=[
                {"id": "a1", "type": "course_created", "description": "Matemática I"},
                {"id": "a2", "type": "student_enrolled", "description": "Alta"},
            ],
        ),
        "inst-3": InstitutionStatistics(courses_count=0, students_count=5, professors_count=1),
    }


@pytest.fixture
def make_records():
    """Factory for `count` well-formed records."""
    def _make(count):
        return [
            InstitutionRecord(
                id=f"inst-{i}",
                name=f"Institución de prueba {i}",
                address=f"Calle {i}",
                phone="555-0000",
                email=f"inst{i}@example.edu",
                created_at=datetime(2024, 1, 1, 12, 0),
            )
            for i in range(count)
        ]
    return _make
