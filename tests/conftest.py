import pytest

from db import init_db, make_engine
from repository import InMemoryRepository, SQLRepository


@pytest.fixture(params=["memory", "sql"])
def repo(request):
    """Both repository implementations, each on an empty store"""
    if request.param == "memory":
        return InMemoryRepository()
    engine = make_engine("sqlite://")
    init_db(engine)
    return SQLRepository(engine)
