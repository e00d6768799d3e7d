"""Request handlers for voting, tallies and entry editing."""

import json
from dataclasses import dataclass, field
from urllib.parse import parse_qs, quote

from anything.logger import get_logger
from anything.models import KEY_SEPARATOR, MAX_COST, MIN_COST, Entry, GroupView, Weekday
from anything.schedule import weekday_for_short
from anything.store import Store
from anything.version import version

log = get_logger("api.app")

GROUP_ORDER_FIELD = "_groupOrder"


@dataclass
class Request:
    """An incoming HTTP request, already split into its parts."""
    method: str
    path: str
    query: dict[str, list[str]] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def arg(self, name: str) -> str:
        """First value of a query parameter, or "" if absent."""
        values = self.query.get(name)
        return values[0] if values else ""

    def form(self) -> dict[str, list[str]]:
        """Parse a url-encoded body."""
        content_type = self.headers.get("content-type", "")
        if content_type and "application/x-www-form-urlencoded" not in content_type:
            raise ValueError(f"Unsupported content type: {content_type}")
        return parse_qs(self.body.decode("utf-8"), keep_blank_values=True, strict_parsing=False)


class App:
    """Routes requests to the store and renders JSON responses.

    Accepts:
    - GET  /                              voting page data for the token's person
    - GET  /votes?period=P[&weekday=W]    tally for a period
    - POST /votes                         submit votes, then tally for right now
    - GET  /entries                       entry editing data
    - POST /entries                       replace entries and group order
    - GET  /status                        version string
    """

    def __init__(self, store: Store, title: str = "Anything"):
        self.store = store
        self.title = title
        self._routes = {
            ("GET", "/"): self.handle_vote,
            ("GET", "/votes"): self.handle_tally_get,
            ("POST", "/votes"): self.handle_tally_post,
            ("GET", "/entries"): self.handle_entries_get,
            ("POST", "/entries"): self.handle_entries_post,
            ("GET", "/status"): self.handle_status,
        }

    def __call__(self, request: Request) -> dict:
        route = self._routes.get((request.method, request.path))
        if route is None:
            if any(path == request.path for _, path in self._routes):
                return create_response({"error": "Method not allowed"}, status=405)
            return create_response({"error": "Not found"}, status=404)

        try:
            return route(request)
        except Exception as e:
            log.exception(f"Unhandled error for {request.method} {request.path}: {e}")
            return create_response({"error": "Internal Server Error"}, status=500)

    def _authenticate(self, request: Request) -> str | None:
        return self.store.person_for_token(request.arg("token"))

    def _page(self, request: Request, person: str | None, groups: list[GroupView], **extra) -> dict:
        data = {
            "title": self.title,
            "token": request.arg("token"),
            "person": person or "",
            "periods": self.store.period_list,
            "groups": [g.to_dict() for g in groups],
        }
        data.update(extra)
        return data

    def _tally_page(self, request: Request, person: str, weekday: Weekday, period: str) -> dict:
        groups = self.store.tally_view(weekday, period)
        return self._page(
            request,
            person,
            groups,
            period=period,
            weekday=weekday.full,
            weekday_short=weekday.short,
            prev_weekday=weekday.previous().short,
            next_weekday=weekday.next().short,
        )

    def handle_vote(self, request: Request) -> dict:
        person = self._authenticate(request)
        if person is None:
            return create_response({"error": "Forbidden"}, status=403)

        return create_response(self._page(request, person, self.store.vote_view(person)))

    def handle_tally_get(self, request: Request) -> dict:
        person = self._authenticate(request)
        if person is None:
            return create_response({"error": "Forbidden"}, status=403)

        period = request.arg("period")
        if not self.store.is_period(period):
            return create_response({"error": "Bad Request: invalid period"}, status=400)

        short = request.arg("weekday")
        if short:
            weekday = weekday_for_short(short)
            if weekday is None:
                return create_response({"error": "Bad Request: invalid weekday"}, status=400)
        else:
            weekday = self.store.tally_weekday(period)

        return create_response(self._tally_page(request, person, weekday, period))

    def handle_tally_post(self, request: Request) -> dict:
        person = self._authenticate(request)
        if person is None:
            return create_response({"error": "Forbidden"}, status=403)

        try:
            form = request.form()
        except (ValueError, UnicodeDecodeError):
            return create_response({"error": "Bad Request"}, status=400)

        votes = {key: values[0] for key, values in form.items() if values}
        self.store.update_votes(person, votes)

        weekday, period = self.store.current_slot()
        if period is None:
            return create_response({"error": "No active period"}, status=400)

        return create_response(self._tally_page(request, person, weekday, period))

    def handle_entries_get(self, request: Request) -> dict:
        if self._authenticate(request) is None:
            return create_response({"error": "Forbidden"}, status=403)

        return create_response(self._page(
            request,
            None,
            self.store.entries_view(),
            weekdays=[wd.to_dict() for wd in Weekday],
            group_order=self.store.group_order(),
        ))

    def handle_entries_post(self, request: Request) -> dict:
        if self._authenticate(request) is None:
            return create_response({"error": "Forbidden"}, status=403)

        try:
            form = request.form()
        except (ValueError, UnicodeDecodeError):
            return create_response({"error": "Bad Request"}, status=400)

        entries = parse_entries_form(form)
        group_order = form.get(GROUP_ORDER_FIELD, [])

        self.store.update_entries(entries)
        self.store.update_group_order(group_order)
        log.info(f"Entries replaced: {len(entries)} entries, {len(group_order)} ordered groups")

        token = quote(request.arg("token"), safe="")
        return create_response("", status=303, headers={"Location": f"/?token={token}"})

    def handle_status(self, request: Request) -> dict:
        return create_response(version(), headers={"Content-Type": "text/plain; charset=utf-8"})


def parse_entry_value(value: str) -> tuple[int, dict[str, list[str]]] | None:
    """Parse "cost;day:period,period;day:period" into (cost, open schedule).

    Returns None when the cost is not an integer between MIN_COST and
    MAX_COST. Malformed day items are skipped.
    """
    parts = value.split(";")
    try:
        cost = int(parts[0])
    except ValueError:
        return None
    if not MIN_COST <= cost <= MAX_COST:
        return None

    schedule: dict[str, list[str]] = {}
    for part in parts[1:]:
        day, sep, periods = part.partition(":")
        if not sep or not periods:
            continue
        schedule[day] = periods.split(",")
    return cost, schedule


def parse_entries_form(form: dict[str, list[str]]) -> list[Entry]:
    """Build the entry catalog from an entry editing form.

    Each field is keyed "Group|Name" with a value understood by
    parse_entry_value. Fields with an empty group or name, or an invalid
    value, are dropped.
    """
    entries = []
    for key, values in form.items():
        group, sep, name = key.partition(KEY_SEPARATOR)
        if not sep or not group or not name or not values:
            continue
        parsed = parse_entry_value(values[0])
        if parsed is None:
            continue
        cost, schedule = parsed
        entries.append(Entry(name=name, group=group, cost=cost, open=schedule))
    return entries


def create_response(body, status: int = 200, headers: dict = None):
    """Create a response dict in the serverless handler format."""
    response_headers = {
        "Content-Type": "application/json",
    }
    if headers:
        response_headers.update(headers)

    if isinstance(body, dict):
        body = json.dumps(body)

    return {
        "statusCode": status,
        "headers": response_headers,
        "body": body,
    }
