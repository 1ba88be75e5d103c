"""GitHub credential provider.

A token is taken from `GITHUB_TOKEN`, then `GH_TOKEN`, and finally from
the GitHub CLI (`gh auth token`).
"""

from subprocess import CalledProcessError, run  # noqa: S404

from mdflow.errors import CredentialsError
from mdflow.settings import TokenSettings, get_settings


def get_github_token() -> str:
    """Resolve a GitHub bearer token.

    Returns:
        The token text.

    Raises:
        CredentialsError: If no token is configured and the GitHub CLI
            cannot provide one.
    """
    token = TokenSettings().token
    if token is not None and token.get_secret_value():
        return token.get_secret_value()

    command = get_settings().token_command
    try:
        result = run(  # noqa: S603
            command,
            capture_output=True,
            check=True,
            text=True,
        )
    except (OSError, CalledProcessError) as error:
        raise CredentialsError(
            'GitHub token not found: set GITHUB_TOKEN or GH_TOKEN, '
            'or authenticate with `gh auth login`',
        ) from error

    if not (output := result.stdout.strip()):
        raise CredentialsError('GitHub CLI returned an empty token')

    return output
