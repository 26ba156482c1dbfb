from __future__ import annotations

from datetime import UTC, datetime

import pytest

from fakes import killmail_payload
from mkb.esi.client import KillmailRef, http_date
from mkb.esi.errors import EsiRequestError


def test_http_date_treats_naive_as_utc() -> None:
    aware = datetime(2025, 9, 30, 22, 55, 17, tzinfo=UTC)
    assert http_date(aware) == "Tue, 30 Sep 2025 22:55:17 GMT"
    assert http_date(aware.replace(tzinfo=None)) == "Tue, 30 Sep 2025 22:55:17 GMT"


@pytest.mark.asyncio
async def test_recent_killmails(esi, fake_eve) -> None:
    fake_eve.recent[2112000001] = [
        {"killmail_id": 130000001, "killmail_hash": "aaa"},
        {"killmail_id": 130000002, "killmail_hash": "bbb"},
    ]

    refs = await esi.recent_killmails(character_id=2112000001, access_token="tok")

    assert refs == [KillmailRef(130000001, "aaa"), KillmailRef(130000002, "bbb")]
    request = fake_eve.requests[-1]
    assert request.url.path == "/latest/characters/2112000001/killmails/recent/"
    assert request.headers["authorization"] == "Bearer tok"
    assert "if-modified-since" not in request.headers


@pytest.mark.asyncio
async def test_recent_killmails_not_modified(esi, fake_eve) -> None:
    fake_eve.recent[2112000001] = []

    refs = await esi.recent_killmails(
        character_id=2112000001,
        access_token="tok",
        last_fetched=datetime(2025, 9, 30, 22, 55, 17, tzinfo=UTC),
    )

    assert refs == []
    assert fake_eve.requests[-1].headers["if-modified-since"] == "Tue, 30 Sep 2025 22:55:17 GMT"


@pytest.mark.asyncio
async def test_recent_killmails_forbidden(esi) -> None:
    with pytest.raises(EsiRequestError) as exc:
        await esi.recent_killmails(character_id=1, access_token="tok")
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_killmail_detail(esi, fake_eve) -> None:
    fake_eve.killmails[(130000001, "aaa")] = killmail_payload(130000001)

    body = await esi.killmail(killmail_id=130000001, killmail_hash="aaa")

    assert body["solar_system_id"] == 30000142
    assert fake_eve.requests[-1].url.path == "/latest/killmails/130000001/aaa/"


@pytest.mark.asyncio
async def test_killmail_detail_unknown_hash(esi) -> None:
    with pytest.raises(EsiRequestError) as exc:
        await esi.killmail(killmail_id=130000001, killmail_hash="nope")
    assert exc.value.status_code == 422


@pytest.mark.parametrize(
    ("error", "retryable"),
    [
        (EsiRequestError("boom", transport=True), True),
        (EsiRequestError("boom", status_code=500), True),
        (EsiRequestError("boom", status_code=503), True),
        (EsiRequestError("boom", status_code=420), True),
        (EsiRequestError("boom", status_code=429), True),
        (EsiRequestError("boom", status_code=404), False),
        (EsiRequestError("boom", status_code=422), False),
        (EsiRequestError("malformed killmail 1: expected an object"), False),
    ],
)
def test_retryable_errors(error, retryable) -> None:
    assert error.retryable is retryable


@pytest.mark.asyncio
async def test_network_error_is_retryable(esi, fake_eve) -> None:
    fake_eve.killmail_errors[130000001] = "connect"

    with pytest.raises(EsiRequestError) as exc:
        await esi.killmail(killmail_id=130000001, killmail_hash="aaa")
    assert exc.value.status_code is None
    assert exc.value.retryable
