"""`agent-images` command-line client."""

from __future__ import annotations

import argparse
import mimetypes
import subprocess
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TextIO
from urllib.parse import urlsplit

import httpx

from agent_images.cli.config_store import (
    DEFAULT_AGENT_NAME,
    CliConfig,
    read_config,
    save_config,
)

UPLOAD_TIMEOUT_SECONDS = 60.0
FALLBACK_CONTENT_TYPE = "application/octet-stream"
SKILL_REPO_URL = "https://github.com/atimmer/gh-agent-images-hoster"
SKILL_NAME = "gh-agent-images-upload"

CommandRunner = Callable[[list[str]], int]


class CliError(RuntimeError):
    """Raised for any failure that should end the invocation with exit code 1."""


def ensure_http_origin(raw_url: str) -> str:
    """Validate an http(s) URL and reduce it to its origin."""

    parts = urlsplit(raw_url.strip())
    if not parts.scheme or not parts.netloc:
        raise CliError("`--api` must be a valid URL.")
    if parts.scheme not in ("http", "https"):
        raise CliError("`--api` must use http:// or https://.")
    return f"{parts.scheme}://{parts.netloc}"


def guess_content_type(file_name: str) -> str:
    """Infer a content type from the file extension."""

    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or FALLBACK_CONTENT_TYPE


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""

    parser = argparse.ArgumentParser(
        prog="agent-images",
        description="Upload images and print markdown for pull requests.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    auth = commands.add_parser("auth", help="manage stored credentials")
    auth_commands = auth.add_subparsers(dest="auth_command", required=True)
    login = auth_commands.add_parser("login", help="store API origin and CLI token")
    login.add_argument("--api", required=True, help="API origin, e.g. https://images.example")
    login.add_argument("--token", required=True, help="CLI token issued from the dashboard")
    login.add_argument("--agent", default=None, help="default agent name for uploads")

    upload = commands.add_parser("upload", help="upload one image and print markdown")
    upload.add_argument("path", help="path to the image file")
    upload.add_argument("--agent", default=None, help="agent name recorded with the upload")
    upload.add_argument("--alt", default=None, help="markdown alt text")

    install = commands.add_parser(
        "install-skill",
        help="install the upload skill for coding agents via `npx skills`",
    )
    install.add_argument("--agent", default=None, help="target agent for the skill")
    install.add_argument(
        "--global",
        dest="install_global",
        action="store_true",
        help="install for the current user instead of the project",
    )
    return parser


def run_auth_login(args: argparse.Namespace, *, out: TextIO, home: Path | None = None) -> None:
    """Persist API origin, token and default agent."""

    token = (args.token or "").strip()
    if not token:
        raise CliError("Missing required flag: --token")
    api = ensure_http_origin(args.api or "")
    default_agent = (args.agent or "").strip() or DEFAULT_AGENT_NAME

    path = save_config(CliConfig(api=api, token=token, default_agent=default_agent), home=home)
    print(f"Saved auth config to {path}", file=out)
    print(f"Default agent: {default_agent}", file=out)


def run_upload(
    args: argparse.Namespace,
    *,
    out: TextIO,
    client: httpx.Client,
    home: Path | None = None,
) -> None:
    """Upload one local image and print the returned markdown."""

    config = read_config(home=home)
    if config is None or not config.api or not config.token:
        raise CliError(
            "Missing auth config. Run: agent-images auth login --api <url> --token <token>"
        )

    agent_name = (args.agent or "").strip() or config.default_agent
    if not agent_name:
        raise CliError("No agent name configured. Pass --agent <name>.")

    file_path = Path(args.path).expanduser().resolve()
    if not file_path.is_file():
        raise CliError(f"Not a file: {file_path}")

    content_type = guess_content_type(file_path.name)
    if not content_type.startswith("image/"):
        raise CliError(
            f"The file does not look like an image (detected content type: {content_type})."
        )

    data = {"agentName": agent_name}
    alt = (args.alt or "").strip()
    if alt:
        data["alt"] = alt

    try:
        response = client.post(
            f"{config.api.rstrip('/')}/api/cli/upload",
            headers={"Authorization": f"Bearer {config.token}"},
            files={"file": (file_path.name, file_path.read_bytes(), content_type)},
            data=data,
        )
    except httpx.HTTPError as error:
        raise CliError(f"Upload request failed: {error}") from error

    body = _decode_body(response)
    if not response.is_success:
        message = body.get("detail") or body.get("error")
        if not isinstance(message, str) or not message:
            message = f"Upload failed with status {response.status_code}"
        raise CliError(message)

    markdown = body.get("markdown")
    if not isinstance(markdown, str) or not markdown:
        raise CliError("Upload succeeded but markdown was missing from the response.")
    print(markdown, file=out)


def build_install_skill_command(args: argparse.Namespace) -> list[str]:
    """Return the `npx skills add` invocation for the requested target."""

    command = ["npx", "skills", "add", SKILL_REPO_URL, "--skill", SKILL_NAME]
    agent = (args.agent or "").strip()
    if agent:
        command.extend(["--agent", agent])
    if args.install_global:
        command.append("--global")
    return command


def run_install_skill(args: argparse.Namespace, *, runner: CommandRunner) -> None:
    """Delegate skill installation to the skills.sh installer."""

    command = build_install_skill_command(args)
    try:
        exit_code = runner(command)
    except FileNotFoundError as error:
        raise CliError(f"Command not found: {command[0]}") from error
    if exit_code != 0:
        raise CliError(f"Command failed with exit code {exit_code}.")


def _run_subprocess(command: list[str]) -> int:
    return subprocess.run(command, check=False).returncode


def _decode_body(response: httpx.Response) -> dict[str, object]:
    try:
        decoded = response.json()
    except ValueError:
        return {}
    return decoded if isinstance(decoded, dict) else {}


def main(
    argv: Sequence[str] | None = None,
    *,
    client: httpx.Client | None = None,
    home: Path | None = None,
    out: TextIO | None = None,
    err: TextIO | None = None,
    runner: CommandRunner | None = None,
) -> int:
    """Run the CLI and return the process exit code."""

    out = out or sys.stdout
    err = err or sys.stderr
    args = build_parser().parse_args(argv)

    try:
        if args.command == "auth":
            run_auth_login(args, out=out, home=home)
        elif args.command == "install-skill":
            run_install_skill(args, runner=runner or _run_subprocess)
        elif client is not None:
            run_upload(args, out=out, client=client, home=home)
        else:
            with httpx.Client(timeout=UPLOAD_TIMEOUT_SECONDS) as owned_client:
                run_upload(args, out=out, client=owned_client, home=home)
    except (CliError, OSError) as error:
        print(f"Error: {error}", file=err)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
