from __future__ import annotations

from datetime import datetime, timezone

import pytest

from autobank.adapters.deutsche_bank import (
    DeutscheBankAdapter,
    LOGIN_PAGE_PATH,
    LOGIN_PATH,
    find_export_link,
    find_form_action,
    period_form,
)
from autobank.errors import AuthError, FormatError, ProtocolError, TransportError
from http_stub import FailingTransport, SessionCounter, form_fields, make_response


# -----------------------------
# Helpers
# -----------------------------

TURNOVER_PAGE = """
<html><body>
  <form id="accountTurnoversForm" action="/x" method="post">
    <input name="period" value="dynamicRange">
  </form>
</body></html>
"""

RESULT_PAGE = """
<html><body>
  <ul class="export">
    <li class="pdf"><a href="/y.pdf">PDF</a></li>
    <li class="csv"><a href="/y.csv">CSV</a></li>
  </ul>
</body></html>
"""

START = datetime(2016, 1, 1, tzinfo=timezone.utc)
END = datetime(2016, 12, 31, tzinfo=timezone.utc)


def _adapter(session_factory) -> DeutscheBankAdapter:
    return DeutscheBankAdapter("100", "1234567", "54321", session_factory=session_factory)


def _route_all(stub, turnover=TURNOVER_PAGE, result=RESULT_PAGE, export="A;B\nC;D;E\n"):
    stub.route("GET", LOGIN_PAGE_PATH, "<html>login</html>")
    stub.route("POST", LOGIN_PATH, turnover)
    stub.route("POST", "/x", result)
    stub.route("GET", "/y.csv", lambda req: make_response(req, export, content_type="text/csv; charset=utf-8"))


# -----------------------------
# Form encoding
# -----------------------------

def test_period_form_pads_single_digit_month_and_day():
    fields = dict(period_form(START, datetime(2016, 2, 3, tzinfo=timezone.utc)))

    assert fields["periodStartMonth"] == "01"
    assert fields["periodStartDay"] == "01"
    assert fields["periodStartYear"] == "2016"
    assert fields["periodEndMonth"] == "02"
    assert fields["periodEndDay"] == "03"
    assert fields["periodEndYear"] == "2016"


def test_period_form_keeps_double_digit_month_and_day():
    fields = dict(period_form(END, END))

    assert fields["periodStartMonth"] == "12"
    assert fields["periodStartDay"] == "31"
    assert fields["periodEndMonth"] == "12"
    assert fields["periodEndDay"] == "31"
    assert fields["periodStartYear"] == fields["periodEndYear"] == "2016"


def test_period_form_fixed_fields():
    fields = dict(period_form(START, END))

    assert fields["subaccountAndCurrency"] == "00"
    assert fields["period"] == "dynamicRange"
    assert fields["periodDays"] == "180"
    assert fields["searchString"] == ""


# -----------------------------
# Page discovery
# -----------------------------

def test_find_form_action():
    assert find_form_action(TURNOVER_PAGE) == "/x"
    assert find_form_action("<form id='other' action='/z'></form>") is None
    assert find_form_action("<form id='accountTurnoversForm'></form>") is None


def test_find_export_link():
    assert find_export_link(RESULT_PAGE) == "/y.csv"
    assert find_export_link("<div class='csv'>no link</div>") is None
    assert find_export_link("<a href='/y.csv'>CSV</a>") is None


# -----------------------------
# Full protocol
# -----------------------------

def test_statements_end_to_end(stub, session_factory):
    _route_all(stub)

    rows = _adapter(session_factory).statements(START, END)

    assert rows == [["A", "B"], ["C", "D", "E"]]
    paths = [(r.method, r.path_url) for r in stub.requests]
    assert paths == [
        ("GET", LOGIN_PAGE_PATH),
        ("POST", LOGIN_PATH),
        ("POST", "/x"),
        ("GET", "/y.csv"),
    ]


def test_login_request_shape(stub, session_factory):
    _route_all(stub)

    _adapter(session_factory).statements(START, END)

    landing = stub.calls("GET", LOGIN_PAGE_PATH)[0]
    assert landing.headers["Accept-Language"] == "en-US,en;q=0.8,da;q=0.6"

    login = stub.calls("POST", LOGIN_PATH)[0]
    assert login.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert dict(form_fields(login)) == {
        "gvo": "DisplayFinancialOverview",
        "loginTab": "pin",
        "process": "",
        "wknOrIsin": "",
        "quantity": "",
        "fingerprintToken": "",
        "fingerprintTokenVersion": "",
        "updateFingerprintToken": "false",
        "javascriptEnabled": "false",
        "branch": "100",
        "account": "1234567",
        "subaccount": "00",
        "pin": "54321",
        "quickLink": "DisplayTransactions",
    }


def test_period_filter_posted_to_discovered_action(stub, session_factory):
    _route_all(stub)

    _adapter(session_factory).statements(START, END)

    fields = dict(form_fields(stub.calls("POST", "/x")[0]))
    assert fields["periodStartMonth"] == "01"
    assert fields["periodStartDay"] == "01"
    assert fields["periodEndMonth"] == "12"
    assert fields["periodEndDay"] == "31"


def test_missing_refresh_form_stops_before_filter(stub, session_factory):
    _route_all(stub, turnover="<html><body>Please log in</body></html>")

    with pytest.raises(ProtocolError, match="failed to find refresh form on page"):
        _adapter(session_factory).statements(START, END)

    assert stub.calls("POST", "/x") == []
    assert stub.calls("GET", "/y.csv") == []


def test_missing_csv_link_stops_before_download(stub, session_factory):
    _route_all(stub, result="<html><body><div class='pdf'><a href='/y.pdf'>PDF</a></div></body></html>")

    with pytest.raises(ProtocolError, match="failed to find csv link on page"):
        _adapter(session_factory).statements(START, END)

    assert len(stub.calls("POST", "/x")) == 1
    assert stub.calls("GET", "/y.csv") == []


def test_ragged_rows_keep_their_length(stub, session_factory):
    _route_all(stub, export="Booking date;Value date;Amount\n01/04/2016;01/04/2016\n\nTotal;;;-12,50\n")

    rows = _adapter(session_factory).statements(START, END)

    assert [len(r) for r in rows] == [3, 2, 4]
    assert rows[2] == ["Total", "", "", "-12,50"]


def test_empty_export_is_empty_table(stub, session_factory):
    _route_all(stub, export="")

    assert _adapter(session_factory).statements(START, END) == []


def test_malformed_csv_is_format_error(stub, session_factory):
    _route_all(stub, export='A;"B"x;C\n')

    with pytest.raises(FormatError):
        _adapter(session_factory).statements(START, END)


def test_rejected_login_is_auth_error(stub, session_factory):
    _route_all(stub)
    stub.route("POST", LOGIN_PATH, lambda req: make_response(req, "denied", status=401))

    with pytest.raises(AuthError):
        _adapter(session_factory).statements(START, END)

    assert stub.calls("POST", "/x") == []


def test_landing_page_status_is_not_checked(stub, session_factory):
    _route_all(stub)
    stub.route("GET", LOGIN_PAGE_PATH, lambda req: make_response(req, "oops", status=500))

    assert _adapter(session_factory).statements(START, END) == [["A", "B"], ["C", "D", "E"]]


def test_export_http_error_is_transport_error(stub, session_factory):
    _route_all(stub)
    del stub.routes[("GET", "/y.csv")]

    with pytest.raises(TransportError):
        _adapter(session_factory).statements(START, END)


def test_connection_failure_is_transport_error():
    adapter = _adapter(SessionCounter(FailingTransport()))

    with pytest.raises(TransportError):
        adapter.statements(START, END)


def test_every_call_uses_a_new_session(stub, session_factory):
    _route_all(stub)
    adapter = _adapter(session_factory)

    adapter.statements(START, END)
    adapter.statements(START, END)

    assert session_factory.created == 2
    assert len(stub.calls("POST", LOGIN_PATH)) == 2


def test_empty_form_action_is_still_followed(stub, session_factory):
    _route_all(stub, turnover="<form id='accountTurnoversForm' action=''></form>")
    stub.route("POST", "/", RESULT_PAGE)

    assert find_form_action("<form id='accountTurnoversForm' action=''></form>") == ""
    assert _adapter(session_factory).statements(START, END) == [["A", "B"], ["C", "D", "E"]]
    assert len(stub.calls("POST", "/")) == 1


def test_empty_export_href_is_not_missing():
    assert find_export_link("<div class='csv'><a href=''>CSV</a></div>") == ""


# -----------------------------
# Session cookies
# -----------------------------

def test_landing_cookie_is_sent_on_every_later_step(stub, session_factory):
    _route_all(stub)
    stub.route("GET", LOGIN_PAGE_PATH, lambda req: make_response(
        req, "<html>login</html>", set_cookie="JSESSIONID=abc123; Path=/"))

    _adapter(session_factory).statements(START, END)

    landing, login, period, export = stub.requests
    assert "Cookie" not in landing.headers
    for req in (login, period, export):
        assert req.headers["Cookie"] == "JSESSIONID=abc123"


def test_cookies_do_not_leak_into_next_call(stub, session_factory):
    _route_all(stub)
    stub.route("GET", LOGIN_PAGE_PATH, lambda req: make_response(
        req, "<html>login</html>", set_cookie="JSESSIONID=abc123; Path=/"))
    adapter = _adapter(session_factory)

    adapter.statements(START, END)
    adapter.statements(START, END)

    second_landing = stub.requests[4]
    assert second_landing.path_url == LOGIN_PAGE_PATH
    assert "Cookie" not in second_landing.headers
    assert stub.requests[5].headers["Cookie"] == "JSESSIONID=abc123"
