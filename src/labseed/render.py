"""
Result rendering.

Turns the orchestrator's result tree into the output document, either as
YAML or through a user-supplied Jinja2 template. Templates receive the
document keys as top-level variables, with every field present (empty
strings, ``None`` token, empty lists)::

    {% for user in users %}
    {{ user.username }} {{ user.token.value if user.token else '' }} {{ endpoint }}
    {% endfor %}
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import jinja2
import structlog
import yaml

from labseed.errors import RenderError
from labseed.orchestrator.results import AccountResult

logger = structlog.get_logger()

_DEFAULT_PORTS = {"http": 80, "https": 443}

# Left out of YAML output when empty
_OPTIONAL_KEYS = frozenset({"password", "token", "groups", "projects", "web_url"})


@dataclass(frozen=True)
class Endpoint:
    endpoint: str
    scheme: str
    host: str
    port: int


def parse_endpoint(url: str) -> Endpoint:
    """
    Split a GitLab base URL into endpoint, scheme, host and port.

    A URL without a scheme is treated as https. Default ports are left out
    of the normalized ``endpoint``; explicit non-default ports are kept.

    Examples:
        https://gitlab.example.com/  -> https://gitlab.example.com, 443
        http://10.0.0.5:8080         -> http://10.0.0.5:8080, 8080
    """
    remainder = url.strip().rstrip("/")
    scheme = "https"
    for candidate in ("http", "https"):
        marker = f"{candidate}://"
        if remainder.startswith(marker):
            scheme = candidate
            remainder = remainder[len(marker):]
            break

    host = remainder
    port = _DEFAULT_PORTS[scheme]
    if host.count(":") == 1:
        host, _, raw_port = host.partition(":")
        if raw_port.isdigit():
            port = int(raw_port)

    if port == _DEFAULT_PORTS[scheme]:
        endpoint = f"{scheme}://{host}"
    else:
        endpoint = f"{scheme}://{host}:{port}"
    return Endpoint(endpoint=endpoint, scheme=scheme, host=host, port=port)


def build_output(endpoint_url: str, results: Iterable[AccountResult]) -> dict[str, Any]:
    """Assemble the output document for a create run."""
    endpoint = parse_endpoint(endpoint_url)
    return {
        "endpoint": endpoint.endpoint,
        "scheme": endpoint.scheme,
        "host": endpoint.host,
        "port": endpoint.port,
        "users": [result.to_dict() for result in results],
    }


def _drop_empty(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: _drop_empty(item)
            for key, item in value.items()
            if not (key in _OPTIONAL_KEYS and item in (None, "", []))
        }
    if isinstance(value, list):
        return [_drop_empty(item) for item in value]
    return value


def render_yaml(document: dict[str, Any]) -> str:
    """Dump the document as YAML, leaving out empty optional fields."""
    return yaml.dump(_drop_empty(document), default_flow_style=False, sort_keys=False, allow_unicode=True)


def render_template(template_path: str | Path, document: dict[str, Any]) -> str:
    """
    Render the document through a Jinja2 template file.

    Undefined variables are errors rather than empty strings.

    Raises:
        RenderError: If the template cannot be read, parsed or rendered
    """
    path = Path(template_path)
    try:
        source = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RenderError(f"read template file {path}: {exc}") from exc

    env = jinja2.Environment(undefined=jinja2.StrictUndefined, keep_trailing_newline=True)
    try:
        template = env.from_string(source)
        return template.render(**document)
    except jinja2.TemplateError as exc:
        raise RenderError(f"render template {path}: {exc}") from exc


def write_output(path: str | Path, document: dict[str, Any], template: str | Path | None = None) -> Path:
    """
    Write the document to ``path`` as YAML, or through ``template`` if given.

    Raises:
        RenderError: If rendering or writing fails
    """
    content = render_template(template, document) if template else render_yaml(document)
    output_path = Path(path)
    try:
        output_path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise RenderError(f"write output file {output_path}: {exc}") from exc

    logger.info("output_written", path=str(output_path), templated=bool(template), users=len(document.get("users", [])))
    return output_path
