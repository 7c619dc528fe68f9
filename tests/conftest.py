"""Global fixtures for miot_lan integration."""

# pytest_homeassistant_custom_component provides some fixtures that are provided by
# Home Assistant core. You can find those fixture definitions here:
# https://github.com/MatthewFlamm/pytest-homeassistant-custom-component/blob/master/pytest_homeassistant_custom_component/common.py
from unittest.mock import patch

import pytest

from . import helpers

pytest_plugins = "pytest_homeassistant_custom_component"


# Test initialization must ensure custom_components are enabled
@pytest.fixture(autouse=True)
def auto_enable(request: pytest.FixtureRequest):
    hass = request.getfixturevalue("hass")
    hass.data.pop("custom_components")
    yield


# This fixture is used to prevent HomeAssistant from attempting to create and dismiss persistent
# notifications. These calls would fail without this fixture since the persistent_notification
# integration is never loaded during a test.
@pytest.fixture(name="skip_notifications", autouse=True)
def skip_notifications_fixture():
    """Skip notification calls."""
    with (
        patch("homeassistant.components.persistent_notification.async_create"),
        patch("homeassistant.components.persistent_notification.async_dismiss"),
    ):
        yield


@pytest.fixture()
def time_mock(hass):
    with helpers.TimeMocker(hass) as _time_mock:
        yield _time_mock


@pytest.fixture()
def transport_mock():
    """Patches the python-miio transport so that no packet ever leaves the host."""
    with helpers.TransportMocker() as _transport_mock:
        yield _transport_mock
