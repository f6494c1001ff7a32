from __future__ import annotations

import pytest
import requests

from services.errors import MalformedDataError, NotFoundError, UpstreamError


def test_details_cache_round_trip(make_client, make_session, make_response, company_payload):
    session = make_session({"/company/12345678": make_response(200, company_payload())})
    client = make_client(session)

    first = client.get_details("12345678")
    second = client.get_details("12345678")

    assert len(session.calls) == 1
    assert client.api_calls_made == 1
    assert first == second
    assert first.company_name == "ACME LIMITED"
    assert first.company_type == "ltd"
    assert first.status_interpretation == "Company is actively trading"
    assert first.sic_codes == ("43210",)


def test_expired_entry_is_refetched(make_client, make_session, make_response, company_payload, fake_clock):
    session = make_session({"/company/12345678": make_response(200, company_payload())})
    client = make_client(session)

    client.get_details("12345678")
    fake_clock.advance(3599)
    client.get_details("12345678")
    assert len(session.calls) == 1

    fake_clock.advance(1)
    client.get_details("12345678")
    assert len(session.calls) == 2


def test_age_and_retrieval_time(make_client, make_session, make_response, company_payload, fake_clock):
    session = make_session({"/company/12345678": make_response(200, company_payload(created="2010-03-15"))})
    record = make_client(session).get_details("12345678")

    assert record.data_retrieved_at.timestamp() == fake_clock.now
    assert 14.2 < record.age_years < 14.3
    assert record.company_age == 14


def test_unparseable_date_gives_unknown_age(make_client, make_session, make_response, company_payload):
    session = make_session({"/company/12345678": make_response(200, company_payload(created="not-a-date"))})
    record = make_client(session).get_details("12345678")
    assert record.age_years is None
    assert record.company_age is None


@pytest.mark.parametrize(
    "status,expected",
    [
        ("liquidation", "Company is in liquidation"),
        ("converted-closed", "Company has been converted and closed"),
        ("something-new", "Unknown status"),
    ],
)
def test_status_interpretation(make_client, make_session, make_response, company_payload, status, expected):
    session = make_session({"/company/12345678": make_response(200, company_payload(status=status))})
    assert make_client(session).get_details("12345678").status_interpretation == expected


def test_not_found(make_client, make_session):
    client = make_client(make_session({}))
    with pytest.raises(NotFoundError):
        client.get_details("87654321")


def test_server_error_carries_status(make_client, make_session, make_response):
    session = make_session({"/company/12345678": make_response(500, None, reason="Internal Server Error")})
    with pytest.raises(UpstreamError) as ei:
        make_client(session).get_details("12345678")
    assert ei.value.status == 500
    assert "Registry API error: 500" in str(ei.value)


def test_transport_error_becomes_upstream_error(make_client, make_session):
    session = make_session({"/company/12345678": requests.ConnectionError("connection reset")})
    with pytest.raises(UpstreamError) as ei:
        make_client(session).get_details("12345678")
    assert ei.value.status is None


def test_invalid_json_body(make_client, make_session, make_response):
    session = make_session({"/company/12345678": make_response(200, ValueError("no json"))})
    with pytest.raises(UpstreamError):
        make_client(session).get_details("12345678")


def test_missing_mandatory_field(make_client, make_session, make_response, company_payload):
    payload = company_payload()
    del payload["company_status"]
    session = make_session({"/company/12345678": make_response(200, payload)})
    with pytest.raises(MalformedDataError) as ei:
        make_client(session).get_details("12345678")
    assert ei.value.missing_fields == ["company_status"]
    assert "company_status" in str(ei.value)


def test_429_retries_after_header_delay(make_client, make_session, make_response, company_payload, fake_clock):
    session = make_session(
        {
            "/company/12345678": [
                make_response(429, None, headers={"Retry-After": "2"}),
                make_response(200, company_payload()),
            ]
        }
    )
    record = make_client(session).get_details("12345678")

    assert record.company_number == "12345678"
    assert len(session.calls) == 2
    assert fake_clock.sleeps == [2]


def test_429_without_header_waits_one_second(make_client, make_session, make_response, company_payload, fake_clock):
    session = make_session(
        {"/company/12345678": [make_response(429, None), make_response(200, company_payload())]}
    )
    make_client(session).get_details("12345678")
    assert fake_clock.sleeps == [1]


def test_429_retries_are_capped(make_client, make_session, make_response):
    session = make_session({"/company/12345678": make_response(429, None, headers={"Retry-After": "1"})})
    client = make_client(session, max_rate_limit_retries=2)
    with pytest.raises(UpstreamError) as ei:
        client.get_details("12345678")
    assert ei.value.status == 429
    assert len(session.calls) == 3


def test_distinct_calls_respect_min_interval(make_client, make_session, make_response, company_payload, fake_clock):
    session = make_session(
        {
            "/company/11111111": make_response(200, company_payload(number="11111111")),
            "/company/22222222": make_response(200, company_payload(number="22222222")),
        }
    )
    client = make_client(session)

    client.get_details("11111111")
    client.get_details("22222222")
    assert fake_clock.sleeps == [0.5]

    # Cache hits do not pass through the gate
    client.get_details("11111111")
    assert fake_clock.sleeps == [0.5]
    assert client.api_calls_made == 2


def test_missing_api_key_fails_before_network(make_client, make_session):
    session = make_session({})
    client = make_client(session, registry_api_key=None)
    with pytest.raises(RuntimeError):
        client.get_details("12345678")
    assert session.calls == []


def test_search_sends_query_and_page_size(make_client, make_session, make_response):
    def respond(params):
        return make_response(
            200,
            {
                "items": [
                    {"company_number": "12345678", "title": "ACME LIMITED", "company_status": "active"},
                    {"title": "no number, skipped"},
                ]
            },
        )

    session = make_session({"/search/companies": respond})
    hits = make_client(session).search("Acme")

    assert [h.company_number for h in hits] == ["12345678"]
    assert session.calls[0][1] == {"q": "Acme", "items_per_page": 20}


def test_search_404_is_empty(make_client, make_session):
    assert make_client(make_session({})).search("Nobody") == []


def test_filing_history_is_categorized(make_client, make_session, make_response):
    items = [
        {
            "transaction_id": "t1",
            "type": "AA",
            "date": "2024-05-02",
            "description": "accounts-with-accounts-type-micro-entity",
            "links": {"document_metadata": "https://document.test/doc1"},
        },
        {"transaction_id": "t2", "type": "CS01", "date": "bad-date"},
    ]
    session = make_session({"/company/12345678/filing-history": make_response(200, {"items": items})})
    filings = make_client(session).get_filing_history("12345678")

    assert [f.category for f in filings] == ["accounts", "other"]
    assert filings[0].document_id == "https://document.test/doc1"
    assert filings[0].days_since_filing == 30
    assert filings[1].days_since_filing is None
    assert session.calls[0][1] == {"items_per_page": 50}


def test_filing_history_never_fails(make_client, make_session, make_response):
    session = make_session({"/company/12345678/filing-history": make_response(503, None, reason="Unavailable")})
    assert make_client(session).get_filing_history("12345678") == []
    assert make_client(make_session({}), registry_api_key=None).get_filing_history("12345678") == []


def test_clear_cache_and_stats(make_client, make_session, make_response, company_payload, fake_clock):
    session = make_session({"/company/12345678": make_response(200, company_payload())})
    client = make_client(session)

    client.get_details("12345678")
    fake_clock.advance(10)
    stats = client.cache_stats()
    assert stats.size == 1
    assert stats.oldest_entry_age == 10

    client.clear_cache()
    assert client.cache_stats().size == 0
    client.get_details("12345678")
    assert len(session.calls) == 2


def test_sic_codes_string_is_not_split(make_client, make_session, make_response, company_payload):
    payload = company_payload()
    payload["sic_codes"] = "43210"
    session = make_session({"/company/12345678": make_response(200, payload)})
    assert make_client(session).get_details("12345678").sic_codes == ()
