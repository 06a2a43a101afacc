"""
cpcli - Profile Commands

List and delete configured ClearPass profiles.
"""

import typer

from ..core.config_loader import ConfigLoader
from ..core.exceptions import ConfigurationError


def list_command(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show detailed information for each profile"
    )
):
    """
    List all configured ClearPass profiles.

    Examples:
        cpcli list-profiles
        cpcli list-profiles --verbose
    """
    try:
        profiles = ConfigLoader.list_profiles()
    except ConfigurationError as e:
        typer.echo(f"❌ Error listing profiles: {e.message}", err=True)
        raise typer.Exit(1)

    if not profiles:
        typer.echo("❌ No profiles configured yet")
        typer.echo("\n💡 Tip: Run 'cpcli login' to configure your first profile")
        return

    typer.echo(f"Found {len(profiles)} profile(s):\n")
    for profile in profiles:
        if not verbose:
            typer.echo(f"  • {profile}")
            continue
        info = ConfigLoader.get_profile_info(profile)
        typer.echo(f"📦 {typer.style(profile, fg=typer.colors.CYAN, bold=True)}")
        typer.echo(f"   Server: {info['server']}")
        typer.echo(f"   Client: {info['client_id'] or '-'}")
        typer.echo(f"   User: {info['username'] or '-'}")
        typer.echo(f"   SSL Verification: {'✓' if info['verify_ssl'] else '✗'}")
        typer.echo()

    typer.echo(f"\n📍 Config file: {ConfigLoader.DEFAULT_CONFIG_FILE}")


def delete_command(
    profile: str = typer.Argument(..., help="Profile name to delete"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
):
    """
    Delete a profile and its cached credentials.

    Examples:
        cpcli delete-profile staging
        cpcli delete-profile staging --force
    """
    try:
        profiles = ConfigLoader.list_profiles()
        if profile not in profiles:
            typer.echo(f"❌ Profile '{profile}' not found", err=True)
            typer.echo(f"\n📋 Available profiles: {', '.join(profiles) if profiles else 'None'}")
            raise typer.Exit(1)

        if not force and not typer.confirm(
            f"⚠️  Are you sure you want to delete profile '{profile}'?", default=False
        ):
            typer.echo("Operation cancelled")
            raise typer.Exit(0)

        ConfigLoader.delete_profile(profile)
        typer.echo(f"✅ Profile '{profile}' deleted successfully")

    except ConfigurationError as e:
        typer.echo(f"❌ Error: {e.message}", err=True)
        raise typer.Exit(1)
