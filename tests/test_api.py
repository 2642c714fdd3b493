"""Tests for the HTTP surface."""

import base64

from fastapi.testclient import TestClient

from eidos.api.app import create_app
from eidos.containers import AppContainer
from tests.conftest import FlakyBlobStorage

PNG_BASE64 = base64.b64encode(b"\x89PNG\r\n\x1a\n" + b"\x00" * 8).decode("ascii")


def _client(container: AppContainer) -> TestClient:
    return TestClient(create_app(container))


def test_health(container: AppContainer) -> None:
    response = _client(container).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_settings_patch_merges(container: AppContainer) -> None:
    client = _client(container)

    response = client.patch(
        "/settings", json={"archetype": "editorial", "iteration_count": 3}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["archetype"] == "editorial"
    assert data["iteration_count"] == 3
    assert data["onboarding_complete"] is False
    assert data["can_complete"] is True
    assert client.get("/settings").json() == data


def test_settings_patch_rejects_decrease(container: AppContainer) -> None:
    client = _client(container)
    client.patch("/settings", json={"iteration_count": 2})

    response = client.patch("/settings", json={"iteration_count": 1})

    assert response.status_code == 422
    assert "cannot decrease" in response.json()["detail"]


def test_calibration_flow(container: AppContainer) -> None:
    client = _client(container)

    assert client.post("/settings/onboarding").status_code == 422
    for _ in range(3):
        refined = client.post("/calibration/refine")
    assert refined.json()["iteration_count"] == 3
    assert refined.json()["can_complete"] is True

    response = client.post("/settings/onboarding")

    assert response.status_code == 200
    assert response.json()["onboarding_complete"] is True
    preview = client.get("/calibration/preview").json()
    assert preview["css"] == "brightness(1.09) contrast(1.06) saturate(1.15)"

    restarted = client.post("/calibration/restart").json()
    assert restarted["parameters"]["brightness"] == 1


def test_filters_endpoint(container: AppContainer) -> None:
    client = _client(container)

    response = client.get(
        "/filters", params={"archetype": "classic", "iteration_count": 0}
    )

    assert response.status_code == 200
    assert response.json()["parameters"] == {
        "brightness": 1,
        "contrast": 1,
        "saturation": 1,
        "sepia": 0,
    }
    bad = client.get("/filters", params={"archetype": "vintage", "iteration_count": 1})
    assert bad.status_code == 422
    negative = client.get(
        "/filters", params={"archetype": "natural", "iteration_count": -1}
    )
    assert negative.status_code == 422


def test_photo_lifecycle(container: AppContainer) -> None:
    client = _client(container)
    client.patch("/settings", json={"archetype": "editorial", "iteration_count": 3})

    created = client.post("/photos", json={"image_base64": PNG_BASE64})

    assert created.status_code == 201
    photo = created.json()
    assert photo["archetype"] == "editorial"
    assert photo["iteration_count"] == 3
    assert photo["image_data"].startswith("data:image/png;base64,")

    client.patch("/settings", json={"archetype": "classic"})
    assert client.get(f"/photos/{photo['id']}").json()["archetype"] == "editorial"
    photo_filter = client.get(f"/photos/{photo['id']}/filter").json()
    assert photo_filter["parameters"]["sepia"] is None
    assert [item["id"] for item in client.get("/photos").json()["photos"]] == [
        photo["id"]
    ]

    assert client.delete(f"/photos/{photo['id']}").status_code == 204
    assert client.delete(f"/photos/{photo['id']}").status_code == 204
    assert client.get(f"/photos/{photo['id']}").status_code == 404


def test_photo_with_filter_disabled_has_no_filter(container: AppContainer) -> None:
    client = _client(container)
    photo = client.post(
        "/photos", json={"image_base64": PNG_BASE64, "filter_enabled": False}
    ).json()

    response = client.get(f"/photos/{photo['id']}/filter")

    assert response.json() == {"parameters": None, "css": "none"}


def test_photo_rejects_bad_payload(container: AppContainer) -> None:
    client = _client(container)

    assert client.post("/photos", json={"image_base64": "%%%"}).status_code == 422
    assert (
        client.post(
            "/photos", json={"image_base64": PNG_BASE64, "image_format": "tiff"}
        ).status_code
        == 422
    )
    assert client.get("/photos", params={"order": "random"}).status_code == 422


def test_persistence_failure_returns_503(
    container: AppContainer, storage: FlakyBlobStorage
) -> None:
    client = _client(container)
    storage.fail_writes = True

    response = client.post("/photos", json={"image_base64": PNG_BASE64})

    assert response.status_code == 503
    assert response.json()["dirty"] is True
    assert client.get("/settings").json()["dirty"] is True


def test_reset_restores_defaults(container: AppContainer) -> None:
    client = _client(container)
    client.patch("/settings", json={"archetype": "classic", "iteration_count": 4})
    client.post("/photos", json={"image_base64": PNG_BASE64})

    response = client.post("/reset")

    assert response.status_code == 200
    assert response.json()["archetype"] == "natural"
    assert response.json()["iteration_count"] == 0
    assert client.get("/photos").json() == {"photos": []}
