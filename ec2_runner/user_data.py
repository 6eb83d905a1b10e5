# ec2_runner/user_data.py
import base64

DEFAULT_RUNNER_VERSION = "2.312.0"
RUNNER_RELEASE_URL = (
    "https://github.com/actions/runner/releases/download/"
    "v{version}/actions-runner-linux-${{RUNNER_ARCH}}-{version}.tar.gz"
)


def build_user_data(registration_token: str, label: str, config) -> tuple[str, ...]:
    """
    Render the first-boot script for a runner instance (user data runs as root).

    If config.runner_home_dir is set, the actions-runner software is expected to
    be pre-installed in the AMI and the script just changes into that directory.
    Otherwise the pinned runner release for the instance architecture is
    downloaded into ./actions-runner.

    pre_runner_script is written verbatim; callers must supply shell-safe text.
    """
    pre_runner_script = config.pre_runner_script or ""
    register = (
        f"./config.sh --url {config.github_repo_url} "
        f"--token {registration_token} --labels {label}"
    )

    if config.runner_home_dir:
        return (
            "#!/bin/bash",
            f'cd "{config.runner_home_dir}"',
            f'echo "{pre_runner_script}" > pre-runner-script.sh',
            "source pre-runner-script.sh",
            "export RUNNER_ALLOW_RUNASROOT=1",
            "export DOTNET_SYSTEM_GLOBALIZATION_INVARIANT=1",
            register,
            "./run.sh",
        )

    version = config.runner_version or DEFAULT_RUNNER_VERSION
    return (
        "#!/bin/bash",
        "mkdir actions-runner && cd actions-runner",
        f'echo "{pre_runner_script}" > pre-runner-script.sh',
        "source pre-runner-script.sh",
        'case $(uname -m) in aarch64) ARCH="arm64" ;; amd64|x86_64) ARCH="x64" ;; esac '
        "&& export RUNNER_ARCH=${ARCH}",
        "curl -O -L " + RUNNER_RELEASE_URL.format(version=version),
        f"tar xzf ./actions-runner-linux-${{RUNNER_ARCH}}-{version}.tar.gz",
        "export RUNNER_ALLOW_RUNASROOT=1",
        "export DOTNET_SYSTEM_GLOBALIZATION_INVARIANT=1",
        register,
        "./run.sh",
    )


def encode_user_data(lines) -> str:
    return base64.b64encode("\n".join(lines).encode()).decode()
