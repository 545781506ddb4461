import asyncio

import click

from facsimile import AsyncClient, BrowserProfile, FacsimileError


def show(label: str, resp, color: str) -> None:
    try:
        data = resp.json()
    except ValueError:
        click.secho(f"{label}: status={resp.status_code} body={resp.text[:120]}", fg=color)
        return
    summary = {
        "status": resp.status_code,
        "engine": resp.engine,
        "fidelity": resp.fidelity,
        "ja3": data.get("ja3_hash"),
        "akamai": data.get("akamai_hash"),
        "ua": data.get("user_agent"),
    }
    click.secho(f"{label}: {summary}", fg=color)
    for note in resp.fidelity_notes:
        click.secho(f"    reduced fidelity: {note}", fg=color, dim=True)


async def run(url: str) -> None:
    async with AsyncClient() as c:
        show("Default (chrome_120)", await c.get(url), "yellow")

    async with AsyncClient(profile=BrowserProfile.CHROME_133) as c:
        show("chrome_133", await c.get(url), "green")

    async with AsyncClient(profile=BrowserProfile.FIREFOX, session_id="demo") as c:
        show("firefox, shared session", await c.get(url), "blue")
        await c.destroy_session()

    async with AsyncClient(profile=BrowserProfile.SAFARI, force_http1=True) as c:
        show("safari (h1)", await c.get(url), "magenta")

    async with AsyncClient(use_native_engine=False) as c:
        show("chrome_120, fallback engine only", await c.get(url), "cyan")


@click.command()
@click.option("--url", default="https://tls.browserleaks.com/json", show_default=True)
def main(url: str) -> None:
    """Compare what a fingerprinting endpoint sees for each profile."""
    try:
        asyncio.run(run(url))
    except FacsimileError as exc:
        raise click.ClickException(str(exc)) from exc


if __name__ == "__main__":
    main()
