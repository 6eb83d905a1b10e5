# ec2_runner/config_loader.py
import json
import os
from dataclasses import dataclass, replace
from pathlib import Path

import yaml

from ec2_runner.errors import ConfigurationError
from ec2_runner.instance_manager import LaunchConfig
from ec2_runner.user_data import DEFAULT_RUNNER_VERSION

RUNTIME_CONFIG_PATH = Path("config/runtime.yaml")

INPUT_NAMES = (
    "mode",
    "github-token",
    "ec2-image-id",
    "ec2-instance-type",
    "subnet-id",
    "vpc-id",
    "security-group-id",
    "label",
    "ec2-instance-id",
    "iam-role-name",
    "aws-resource-tags",
    "runner-home-dir",
    "ec2-launch-template",
    "pre-runner-script",
    "aws-region",
    "aws-profile",
    "runner-version",
)

MODES = ("start", "stop")


@dataclass(frozen=True)
class ActionConfig:
    mode: str
    github_token: str
    repository: str
    server_url: str = "https://github.com"
    api_url: str = "https://api.github.com"
    label: str | None = None
    ec2_instance_id: str | None = None
    aws_region: str | None = None
    aws_profile: str | None = None
    launch: LaunchConfig | None = None

    @property
    def github_repo_url(self):
        return f"{self.server_url.rstrip('/')}/{self.repository}"


def _env_input(name, env):
    # GitHub Actions exposes `with:` inputs as INPUT_<NAME>, hyphens kept
    value = env.get(f"INPUT_{name.upper()}")
    if value is None:
        value = env.get(f"INPUT_{name.upper().replace('-', '_')}")
    return value


def resolve_inputs(cli=None, env=None, config_path=None) -> dict:
    """
    Collect raw inputs.
    Priority:
      1) CLI flags
      2) INPUT_* environment variables
      3) config/runtime.yaml (if present)
    Empty strings count as unset.
    """
    cli = cli or {}
    env = os.environ if env is None else env
    path = Path(config_path) if config_path else RUNTIME_CONFIG_PATH

    cfg = {}
    if path.exists():
        with open(path) as f:
            cfg = yaml.safe_load(f) or {}
        if not isinstance(cfg, dict):
            raise ConfigurationError(f"{path} must contain a mapping")
    elif config_path:
        raise ConfigurationError(f"Config file {path} not found")

    inputs = {}
    for name in INPUT_NAMES:
        key = name.replace("-", "_")
        for value in (cli.get(key), _env_input(name, env), cfg.get(key)):
            if value is not None and value != "":
                inputs[name] = value
                break
    return inputs


def _is_scalar(value):
    # bool is an int subclass but "True" is never an intended tag
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def parse_tags(raw) -> tuple:
    """
    Accept a list of {Key, Value} mappings, or its JSON/YAML text form.
    Order and duplicates are preserved.
    """
    if raw is None or raw == "":
        return ()
    if isinstance(raw, str):
        try:
            tags = json.loads(raw)
        except ValueError:
            try:
                tags = yaml.safe_load(raw)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"aws-resource-tags is not valid JSON or YAML: {e}") from e
    else:
        tags = raw
    if tags is None:
        return ()
    if not isinstance(tags, list):
        raise ConfigurationError("aws-resource-tags must be an array of {Key, Value} objects")

    result = []
    for i, tag in enumerate(tags):
        if not isinstance(tag, dict) or "Key" not in tag or "Value" not in tag:
            raise ConfigurationError(f"aws-resource-tags entry {i} must have both Key and Value: {tag!r}")
        for field in ("Key", "Value"):
            if not _is_scalar(tag[field]):
                raise ConfigurationError(
                    f"aws-resource-tags entry {i} {field} must be a string or number: {tag[field]!r}"
                )
        if str(tag["Key"]) == "":
            raise ConfigurationError(f"aws-resource-tags entry {i} has an empty Key")
        result.append({"Key": str(tag["Key"]), "Value": str(tag["Value"])})
    return tuple(result)


def load_action_config(cli=None, env=None, config_path=None) -> ActionConfig:
    env = os.environ if env is None else env
    inputs = resolve_inputs(cli, env, config_path)

    mode = inputs.get("mode")
    if mode not in MODES:
        raise ConfigurationError("Wrong mode. Allowed values: start, stop.")
    if not inputs.get("github-token"):
        raise ConfigurationError("The 'github-token' input is not specified")

    repository = env.get("GITHUB_REPOSITORY", "")
    owner, _, repo = repository.partition("/")
    if not owner or not repo or "/" in repo:
        raise ConfigurationError(f"GITHUB_REPOSITORY must be 'owner/repo', got {repository!r}")

    if mode == "start":
        missing = [n for n in ("ec2-image-id", "ec2-instance-type", "security-group-id") if not inputs.get(n)]
        if missing:
            raise ConfigurationError(f"Not all the required inputs are provided for the 'start' mode: {', '.join(missing)}")
        if inputs.get("subnet-id") and inputs.get("vpc-id"):
            raise ConfigurationError("Specify only one of 'subnet-id' or 'vpc-id'")
    else:
        if not inputs.get("label") or not inputs.get("ec2-instance-id"):
            raise ConfigurationError("Not all the required inputs are provided for the 'stop' mode: label, ec2-instance-id")

    config = ActionConfig(
        mode=mode,
        github_token=inputs["github-token"],
        repository=repository,
        server_url=env.get("GITHUB_SERVER_URL") or "https://github.com",
        api_url=env.get("GITHUB_API_URL") or "https://api.github.com",
        label=inputs.get("label"),
        ec2_instance_id=inputs.get("ec2-instance-id"),
        aws_region=inputs.get("aws-region"),
        aws_profile=inputs.get("aws-profile"),
    )

    if mode == "start":
        launch = LaunchConfig(
            image_id=inputs["ec2-image-id"],
            instance_type=inputs["ec2-instance-type"],
            security_group_id=inputs["security-group-id"],
            subnet_id=inputs.get("subnet-id"),
            vpc_id=inputs.get("vpc-id"),
            iam_role_name=inputs.get("iam-role-name"),
            launch_template=inputs.get("ec2-launch-template"),
            tags=parse_tags(inputs.get("aws-resource-tags")),
            runner_home_dir=inputs.get("runner-home-dir"),
            pre_runner_script=inputs.get("pre-runner-script"),
            runner_version=str(inputs.get("runner-version") or DEFAULT_RUNNER_VERSION),
            github_repo_url=config.github_repo_url,
        )
        config = replace(config, launch=launch)

    return config
