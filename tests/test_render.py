"""Tests for output document rendering."""

import pytest
import yaml

from labseed.errors import RenderError
from labseed.orchestrator import AccountResult, GroupResult, ProjectResult, TokenResult
from labseed.render import build_output, parse_endpoint, render_template, render_yaml, write_output


@pytest.fixture
def results():
    return [
        AccountResult(
            username="alice",
            email="alice@example.com",
            name="Alice",
            user_id=42,
            password="s3cret-pass",
            token=TokenResult(value="glpat-abc", scopes=["api"], expires_at="2026-10-20"),
            groups=[
                GroupResult(
                    name="Team",
                    path="team",
                    group_id=7,
                    projects=[ProjectResult(name="svc", path="team/svc", project_id=9, description="Main")],
                )
            ],
        ),
        AccountResult(username="bob", email="bob@example.com", name="Bob", user_id=43),
    ]


class TestParseEndpoint:
    """Tests for base URL normalization."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://gitlab.example.com", ("https://gitlab.example.com", "https", "gitlab.example.com", 443)),
            ("https://gitlab.example.com/", ("https://gitlab.example.com", "https", "gitlab.example.com", 443)),
            ("http://gitlab.local", ("http://gitlab.local", "http", "gitlab.local", 80)),
            ("http://10.0.0.5:8080", ("http://10.0.0.5:8080", "http", "10.0.0.5", 8080)),
            ("https://gitlab.example.com:443", ("https://gitlab.example.com", "https", "gitlab.example.com", 443)),
            ("http://gitlab.local:443", ("http://gitlab.local:443", "http", "gitlab.local", 443)),
            ("gitlab.example.com", ("https://gitlab.example.com", "https", "gitlab.example.com", 443)),
            ("gitlab.example.com:8443", ("https://gitlab.example.com:8443", "https", "gitlab.example.com", 8443)),
        ],
    )
    def test_parse(self, url, expected):
        endpoint = parse_endpoint(url)
        assert (endpoint.endpoint, endpoint.scheme, endpoint.host, endpoint.port) == expected

    def test_non_numeric_port_keeps_default(self):
        endpoint = parse_endpoint("https://gitlab.example.com:abc")
        assert endpoint.host == "gitlab.example.com"
        assert endpoint.port == 443


class TestBuildOutput:
    def test_document(self, results):
        document = build_output("http://gitlab.local:8080/", results)

        assert document["endpoint"] == "http://gitlab.local:8080"
        assert document["scheme"] == "http"
        assert document["host"] == "gitlab.local"
        assert document["port"] == 8080
        assert [u["username"] for u in document["users"]] == ["alice", "bob"]

    def test_every_field_is_present(self, results):
        bob = build_output("https://gitlab.example.com", results)["users"][1]

        assert bob["password"] == ""
        assert bob["token"] is None
        assert bob["groups"] == []
        assert bob["projects"] == []

    def test_yaml_leaves_out_empty_sections(self, results):
        loaded = yaml.safe_load(render_yaml(build_output("https://gitlab.example.com", results)))

        assert loaded["users"][1] == {"username": "bob", "email": "bob@example.com", "name": "Bob", "user_id": 43}
        assert "web_url" not in loaded["users"][0]["groups"][0]["projects"][0]

    def test_yaml_roundtrip_keeps_key_order(self, results):
        text = render_yaml(build_output("https://gitlab.example.com", results))

        assert text.startswith("endpoint: https://gitlab.example.com\n")
        loaded = yaml.safe_load(text)
        alice = loaded["users"][0]
        assert alice["token"] == {"value": "glpat-abc", "scope": ["api"], "expires_at": "2026-10-20"}
        assert alice["groups"][0]["projects"][0]["path"] == "team/svc"
        assert alice["password"] == "s3cret-pass"


class TestTemplates:
    """Tests for Jinja2 template rendering."""

    def test_render(self, tmp_path, results):
        template = tmp_path / "out.j2"
        template.write_text(
            "{% for user in users %}{{ user.username }}={{ user.token.value if user.token else '-' }}\n{% endfor %}"
            "host={{ host }}\n"
        )

        text = render_template(template, build_output("https://gitlab.example.com", results))

        assert text == "alice=glpat-abc\nbob=-\nhost=gitlab.example.com\n"

    def test_user_without_groups_or_password(self, tmp_path, results):
        template = tmp_path / "out.j2"
        template.write_text(
            "{% for u in users %}{{ u.username }}:{{ u.password }}:"
            "{% for g in u.groups %}{{ g.path }}{% for p in g.projects %}/{{ p.name }}{% endfor %}{% endfor %}"
            ":{{ u.projects | length }}\n{% endfor %}"
        )

        text = render_template(template, build_output("https://gitlab.example.com", results))

        assert text == "alice:s3cret-pass:team/svc:0\nbob:::0\n"

    def test_undefined_variable_is_an_error(self, tmp_path, results):
        template = tmp_path / "out.j2"
        template.write_text("{{ missing_key }}")

        with pytest.raises(RenderError, match="out.j2"):
            render_template(template, build_output("https://gitlab.example.com", results))

    def test_syntax_error(self, tmp_path):
        template = tmp_path / "out.j2"
        template.write_text("{% for user in users %}")

        with pytest.raises(RenderError):
            render_template(template, {"users": []})

    def test_missing_template(self, tmp_path):
        with pytest.raises(RenderError, match="read template"):
            render_template(tmp_path / "nope.j2", {})


class TestWriteOutput:
    def test_writes_yaml(self, tmp_path, results):
        target = tmp_path / "out.yaml"

        write_output(target, build_output("https://gitlab.example.com", results))

        assert yaml.safe_load(target.read_text())["users"][0]["user_id"] == 42

    def test_writes_template(self, tmp_path, results):
        template = tmp_path / "out.j2"
        template.write_text("{{ endpoint }}")
        target = tmp_path / "out.txt"

        write_output(target, build_output("https://gitlab.example.com", results), template)

        assert target.read_text() == "https://gitlab.example.com"

    def test_unwritable_path(self, tmp_path):
        with pytest.raises(RenderError, match="write output"):
            write_output(tmp_path / "missing-dir" / "out.yaml", {"users": []})
