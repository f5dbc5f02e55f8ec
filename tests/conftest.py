import pytest

from app import app as flask_app
from product_catalogs import get_product


@pytest.fixture
def app():
    flask_app.config.update(
        TESTING=True,
        SECRET_KEY="test-secret",
        PAYMENT_SIMULATION_DELAY=0,
    )
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def tshirt():
    # base 980, custom group, full XS..XXL grid
    return get_product("tshirt-basic")


@pytest.fixture
def polo():
    # base 1480, custom group
    return get_product("polo-basic")


@pytest.fixture
def soccer():
    # base 1980, uniform group
    return get_product("soccer-pro")
