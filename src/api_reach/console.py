"""
Rich console tracing of requests and responses.

Enabled per client with ``ClientOptions(debug=True)`` or API_REACH_DEBUG=1.
"""
import json
from typing import Any, Dict, Mapping, Optional

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from .types import RequestDescriptor, ResponseEnvelope

console = Console(stderr=True)

SENSITIVE_HEADERS = ("authorization", "x-api-key")


def mask_auth_header(value: Optional[str], show_chars: int = 15) -> str:
    """Keep the first ``show_chars`` characters of a secret header value."""
    if not value:
        return "<none>"
    if len(value) <= show_chars:
        return "*" * len(value)
    return value[:show_chars] + "***"


def mask_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Mask authorization headers for safe printing."""
    masked = dict(headers)
    for key in masked:
        if key.lower() in SENSITIVE_HEADERS:
            masked[key] = mask_auth_header(masked[key])
    return masked


def format_body(body: Any) -> str:
    """Format body for pretty printing."""
    if body is None:
        return ""
    if isinstance(body, (dict, list)):
        return json.dumps(body, indent=2, ensure_ascii=False)
    if isinstance(body, bytes):
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError:
            return f"<binary data: {len(body)} bytes>"
    if isinstance(body, str):
        return body
    return f"<{type(body).__name__}>"


def print_panel(content: str, title: Optional[str] = None) -> None:
    console.print(Panel(content, title=title))


def print_syntax_panel(code: str, lexer: str = "json", title: Optional[str] = None) -> None:
    console.print(Panel(Syntax(code, lexer, theme="monokai"), title=title, expand=True))


def print_request(request: RequestDescriptor) -> None:
    print_panel(f"[bold cyan]{request.method}[/bold cyan] {request.url}", title="[bold blue]Request[/bold blue]")
    console.print("[bold]Headers:[/bold]", mask_headers(request.headers))
    if request.body is not None:
        lexer = "json" if request.request_type.value == "json" else "text"
        print_syntax_panel(format_body(request.body), lexer=lexer, title="[bold]Request Body[/bold]")


def print_response(response: ResponseEnvelope) -> None:
    url = response.request.url if response.request else ""
    color = "green" if response.ok else "red"
    cached = " [dim](cached)[/dim]" if response.cached else ""
    print_panel(
        f"[bold {color}]{response.status}[/bold {color}] {response.status_text}{cached}",
        title=f"[bold blue]Response[/bold blue] ({url})",
    )
    console.print("[bold]Headers:[/bold]", mask_headers(response.headers))
    body = format_body(response.body)
    if body:
        lexer = "json" if isinstance(response.body, (dict, list)) else "text"
        print_syntax_panel(body, lexer=lexer, title=f"[bold]Response Body[/bold] (URL: {url})")


def print_failure(request: RequestDescriptor, error: BaseException) -> None:
    print_panel(f"[bold red]{type(error).__name__}[/bold red] {error}", title=f"[bold blue]Failed[/bold blue] ({request.url})")
