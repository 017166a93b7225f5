"""LoveForU CLI — mint dev tokens, watch the live chat event stream.

Usage:
    loveforu token U1234                         # Print a dev JWT for user U1234
    loveforu listen --token "$TOKEN"             # Stream chat events to stdout
    loveforu listen --token "$TOKEN" --count 3   # Stop after three events
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"
EVENTS_PATH = "/api/chat/events"


def _api_url(override: Optional[str] = None) -> str:
    return (override or os.environ.get("LOVEFORU_API_URL", DEFAULT_API_URL)).rstrip("/")


def _client(api_url: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client for a long-lived stream (no read timeout)."""
    return httpx.AsyncClient(
        base_url=_api_url(api_url),
        timeout=httpx.Timeout(10.0, read=None),
    )


def _format_event(event: str, data: str) -> str:
    try:
        body = json.dumps(json.loads(data), sort_keys=True)
    except json.JSONDecodeError:
        body = data
    return f"{event} {body}"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="loveforu")
def main():
    """LoveForU — developer tools for the live chat notification stream."""


# ---------------------------------------------------------------------------
# loveforu token
# ---------------------------------------------------------------------------


@main.command()
@click.argument("user_id")
@click.option("--name", "display_name", help="Display name claim")
@click.option("--picture", "picture_url", help="Picture URL claim")
@click.option("--minutes", type=int, help="Lifetime (default: LOVEFORU_JWT_EXPIRATION_MINUTES)")
def token(user_id: str, display_name: Optional[str], picture_url: Optional[str],
          minutes: Optional[int]):
    """Print an access token for USER_ID signed with the configured key."""
    from loveforu.auth.jwt import create_access_token
    from loveforu.config import settings

    if settings.environment != "development":
        click.secho("Refusing to mint tokens outside development", fg="red", err=True)
        sys.exit(1)

    click.echo(create_access_token(
        user_id,
        display_name=display_name,
        picture_url=picture_url,
        expires_minutes=minutes,
    ))


# ---------------------------------------------------------------------------
# loveforu listen
# ---------------------------------------------------------------------------


@main.command()
@click.option("--token", "access_token", envvar="LOVEFORU_TOKEN", required=True,
              help="Access token (or set LOVEFORU_TOKEN)")
@click.option("--api-url", help=f"Backend URL (default: {DEFAULT_API_URL})")
@click.option("--count", "-n", type=int, help="Exit after N events")
def listen(access_token: str, api_url: Optional[str], count: Optional[int]):
    """Print chat events for the token's user as they arrive."""
    try:
        asyncio.run(_listen_impl(access_token, api_url, count))
    except KeyboardInterrupt:
        pass


async def _listen_impl(access_token: str, api_url: Optional[str],
                       count: Optional[int]):
    from loveforu.realtime.sse import parse_sse_lines

    headers = {"Authorization": f"Bearer {access_token}", "Accept": "text/event-stream"}
    async with _client(api_url) as c:
        async with c.stream("GET", EVENTS_PATH, headers=headers) as r:
            if r.status_code != 200:
                await r.aread()
                click.secho(f"Error {r.status_code}: {r.text}", fg="red", err=True)
                sys.exit(1)

            click.secho(f"Connected to {_api_url(api_url)}{EVENTS_PATH}", fg="green", err=True)
            seen = 0
            frame: list[str] = []
            async for line in r.aiter_lines():
                frame.append(line)
                if line:
                    continue
                for event, data in parse_sse_lines(frame):
                    click.echo(_format_event(event, data))
                    seen += 1
                frame = []
                if count is not None and seen >= count:
                    return
