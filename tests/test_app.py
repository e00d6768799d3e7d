"""Tests for the request handlers."""

import json
from unittest.mock import patch
from urllib.parse import parse_qs, urlencode

import pytest

from tests.conftest import at, make_store

from anything.models import Entry, Weekday
from api.app import App, Request, create_response, parse_entries_form, parse_entry_value

FORM = {"content-type": "application/x-www-form-urlencoded"}


def get(path: str, **params) -> Request:
    return Request(method="GET", path=path, query=parse_qs(urlencode(params)))


def post(path: str, form: list[tuple[str, str]], **params) -> Request:
    return Request(
        method="POST",
        path=path,
        query=parse_qs(urlencode(params)),
        headers=dict(FORM),
        body=urlencode(form).encode("utf-8"),
    )


def body(response: dict) -> dict:
    return json.loads(response["body"])


class TestRouting:
    def setup_method(self):
        self.app = App(make_store())

    def test_not_found(self):
        assert self.app(get("/nope", token="tokenA"))["statusCode"] == 404

    def test_method_not_allowed(self):
        response = self.app(Request(method="DELETE", path="/votes"))
        assert response["statusCode"] == 405

    def test_status(self):
        with patch("api.app.version", return_value="1.2.3"):
            response = self.app(get("/status"))
        assert response["statusCode"] == 200
        assert response["body"] == "1.2.3"
        assert response["headers"]["Content-Type"].startswith("text/plain")

    def test_unexpected_error_is_500(self):
        with patch.object(self.app.store, "vote_view", side_effect=RuntimeError("boom")):
            response = self.app(get("/", token="tokenA"))
        assert response["statusCode"] == 500
        assert "boom" not in response["body"]


class TestHandleVote:
    def setup_method(self):
        self.app = App(make_store())

    @pytest.mark.parametrize("token", ["bad", ""])
    def test_forbidden(self, token):
        assert self.app(get("/", token=token))["statusCode"] == 403

    def test_missing_token(self):
        assert self.app(get("/"))["statusCode"] == 403

    def test_vote_page(self):
        response = self.app(get("/", token="tokenA"))
        assert response["statusCode"] == 200
        data = body(response)
        assert data["title"] == "Anything"
        assert data["person"] == "alice"
        assert data["token"] == "tokenA"
        assert data["periods"] == ["breakfast", "lunch", "dinner"]
        assert [g["name"] for g in data["groups"]] == ["Downtown", "Uptown"]
        assert [e["name"] for e in data["groups"][0]["entries"]] == ["Burger Joint", "Pizza Place"]

    def test_shows_current_votes(self):
        self.app.store.update_votes("alice", {"Downtown|Pizza Place": "strong-yes"})
        data = body(self.app(get("/", token="tokenA")))
        pizza = data["groups"][0]["entries"][1]
        assert pizza["current_vote"] == "strong-yes"

        data = body(self.app(get("/", token="tokenB")))
        assert data["groups"][0]["entries"][1]["current_vote"] == ""


class TestHandleTallyGet:
    def setup_method(self):
        # Monday at noon: lunch.
        self.app = App(make_store(now_func=lambda: at(Weekday.MONDAY, 12)))

    @pytest.mark.parametrize("period, weekday, expected, prev, next_", [
        ("lunch", "", "Monday", "sun", "tue"),
        ("breakfast", "", "Tuesday", "mon", "wed"),
        ("dinner", "", "Monday", "sun", "tue"),
        ("lunch", "fri", "Friday", "thu", "sat"),
        ("lunch", "sun", "Sunday", "sat", "mon"),
        ("dinner", "sat", "Saturday", "fri", "sun"),
    ])
    def test_weekday(self, period, weekday, expected, prev, next_):
        params = {"token": "tokenA", "period": period}
        if weekday:
            params["weekday"] = weekday
        response = self.app(get("/votes", **params))
        assert response["statusCode"] == 200
        data = body(response)
        assert data["period"] == period
        assert data["weekday"] == expected
        assert data["prev_weekday"] == prev
        assert data["next_weekday"] == next_

    def test_tally_contents(self):
        self.app.store.update_votes("alice", {"Uptown|Sushi Bar": "strong-no"})
        data = body(self.app(get("/votes", token="tokenA", period="lunch")))
        uptown = data["groups"][1]
        assert [e["name"] for e in uptown["entries"]] == ["Taco Stand", "Sushi Bar"]
        taco, sushi = uptown["entries"]
        assert taco == {
            "name": "Taco Stand",
            "group": "Uptown",
            "cost": 1,
            "cost_display": "$",
            "current_vote": "",
            "score": 11,
            "open": {},
            "closed": False,
            "strong_no": False,
        }
        assert sushi["closed"] and sushi["strong_no"]

    @pytest.mark.parametrize("params, status", [
        ({"token": "bad", "period": "lunch"}, 403),
        ({"token": "tokenA", "period": "brunch"}, 400),
        ({"token": "tokenA", "period": ""}, 400),
        ({"token": "tokenA"}, 400),
        ({"token": "tokenA", "period": "lunch", "weekday": "xyz"}, 400),
    ])
    def test_errors(self, params, status):
        assert self.app(get("/votes", **params))["statusCode"] == status


class TestHandleTallyPost:
    def setup_method(self):
        self.app = App(make_store(now_func=lambda: at(Weekday.MONDAY, 12)))

    def test_records_votes_and_shows_tally(self):
        response = self.app(post("/votes", [
            ("Downtown|Pizza Place", "strong-yes"),
            ("Downtown|Burger Joint", "no"),
            ("Bogus", "yes"),
        ], token="tokenA"))
        assert response["statusCode"] == 200
        assert self.app.store.votes() == {
            "alice": {"Downtown": {"Pizza Place": "strong-yes", "Burger Joint": "no"}}
        }
        data = body(response)
        assert data["period"] == "lunch"
        assert data["weekday"] == "Monday"
        assert [e["name"] for e in data["groups"][0]["entries"]] == ["Pizza Place", "Burger Joint"]

    def test_repeated_key_uses_first_value(self):
        self.app(post("/votes", [
            ("Downtown|Pizza Place", "no"),
            ("Downtown|Pizza Place", "yes"),
        ], token="tokenA"))
        assert self.app.store.votes()["alice"] == {"Downtown": {"Pizza Place": "no"}}

    def test_forbidden(self):
        response = self.app(post("/votes", [("Downtown|Pizza Place", "yes")], token="bad"))
        assert response["statusCode"] == 403
        assert self.app.store.votes() == {}

    def test_unsupported_content_type(self):
        request = post("/votes", [], token="tokenA")
        request.headers = {"content-type": "application/json"}
        assert self.app(request)["statusCode"] == 400

    def test_no_active_period(self):
        app = App(make_store(periods={"lunch": (10, 15)}, now_func=lambda: at(Weekday.MONDAY, 20)))
        response = app(post("/votes", [("Downtown|Pizza Place", "yes")], token="tokenA"))
        assert response["statusCode"] == 400
        assert "No active period" in response["body"]
        # Votes are still recorded.
        assert app.store.votes()["alice"] == {"Downtown": {"Pizza Place": "yes"}}


class TestHandleEntries:
    def setup_method(self):
        self.app = App(make_store())

    def test_get(self):
        response = self.app(get("/entries", token="tokenB"))
        assert response["statusCode"] == 200
        data = body(response)
        assert data["person"] == ""
        assert [wd["short"] for wd in data["weekdays"]] == ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
        assert data["periods"] == ["breakfast", "lunch", "dinner"]
        pizza = data["groups"][0]["entries"][1]
        assert pizza["name"] == "Pizza Place"
        assert pizza["open"]["mon"] == ["lunch", "dinner"]

    def test_get_forbidden(self):
        assert self.app(get("/entries", token="nope"))["statusCode"] == 403

    def test_post_replaces_entries_and_order(self):
        response = self.app(post("/entries", [
            ("Midtown|Noodle House", "2;mon:lunch,dinner;fri:dinner"),
            ("Midtown|Bakery", "1;sat:breakfast"),
            ("Airport|Lounge", "4"),
            ("_groupOrder", "Midtown"),
            ("_groupOrder", "Airport"),
        ], token="tokenA"))
        assert response["statusCode"] == 303
        assert response["headers"]["Location"] == "/?token=tokenA"

        entries = {e.key: e for e in self.app.store.entries()}
        assert entries == {
            ("Midtown", "Noodle House"): Entry(name="Noodle House", group="Midtown", cost=2,
                                               open={"mon": ["lunch", "dinner"], "fri": ["dinner"]}),
            ("Midtown", "Bakery"): Entry(name="Bakery", group="Midtown", cost=1, open={"sat": ["breakfast"]}),
            ("Airport", "Lounge"): Entry(name="Lounge", group="Airport", cost=4),
        }
        assert self.app.store.group_order() == ["Midtown", "Airport"]

    def test_post_without_group_order_clears_it(self):
        self.app.store.update_group_order(["Uptown"])
        self.app(post("/entries", [("G|A", "1")], token="tokenA"))
        assert self.app.store.group_order() == []

    def test_post_forbidden(self):
        response = self.app(post("/entries", [("G|A", "1")], token="bad"))
        assert response["statusCode"] == 403
        assert len(self.app.store.entries()) == 4


class TestParseEntryForm:
    @pytest.mark.parametrize("value, expected", [
        ("2", (2, {})),
        ("3;mon:lunch", (3, {"mon": ["lunch"]})),
        ("1;mon:lunch,dinner;tue:breakfast", (1, {"mon": ["lunch", "dinner"], "tue": ["breakfast"]})),
        ("1;;mon:lunch", (1, {"mon": ["lunch"]})),
        ("1;mon;tue:lunch", (1, {"tue": ["lunch"]})),
        ("1;mon:", (1, {})),
    ])
    def test_valid_values(self, value, expected):
        assert parse_entry_value(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "0", "5", "-1;mon:lunch"])
    def test_invalid_cost(self, value):
        assert parse_entry_value(value) is None

    def test_drops_bad_keys(self):
        entries = parse_entries_form({
            "G|A": ["1"],
            "NoSeparator": ["1"],
            "|A": ["1"],
            "G|": ["1"],
            "G|B": ["9"],
            "_groupOrder": ["G"],
        })
        assert entries == [Entry(name="A", group="G", cost=1)]


class TestCreateResponse:
    def test_dict_body_is_json(self):
        response = create_response({"a": 1})
        assert response["statusCode"] == 200
        assert response["headers"]["Content-Type"] == "application/json"
        assert json.loads(response["body"]) == {"a": 1}

    def test_extra_headers(self):
        response = create_response("", status=303, headers={"Location": "/"})
        assert response["statusCode"] == 303
        assert response["headers"]["Location"] == "/"
