from __future__ import annotations

import pytest


class NetworkDisabled(RuntimeError):
    pass


@pytest.fixture(autouse=True)
def _no_network_in_unit_tests(monkeypatch: pytest.MonkeyPatch):
    """Fail any real HTTP request made through `requests`.

    Unit tests either inject a fake session into `TeleforkClient` or expect
    delivery to fail; nothing should reach the real Telefork endpoint.
    """

    def _request(self, method, url, *args, **kwargs):  # noqa: ANN001
        raise NetworkDisabled(f"unit tests must not call {method} {url}")

    monkeypatch.setattr("requests.Session.request", _request)
    yield
