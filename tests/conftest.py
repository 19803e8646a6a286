import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

TEST_DATABASE_URL = "sqlite:///:memory:"

# StaticPool keeps one connection so every session sees the same :memory: db.
# Models must be imported before create_all (see session_fixture).
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on freshly created tables"""
    import heatgen.models  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)
